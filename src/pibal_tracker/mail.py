"""
Flight report mails.

The report is a multipart message with the per-step result lines as text and
the track plot as a GIF attachment. Messages are spooled to numbered files
for an external mailer to deliver.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from email.message import EmailMessage
from email.policy import SMTP
from pathlib import Path
from typing import List, Optional, Sequence

from .config import MAIL


@dataclass
class MailSettings:
    from_addr: str = MAIL["from_addr"]
    to_addrs: List[str] = field(default_factory=list)
    spool_dir: Path = Path(MAIL["spool_dir"])


def compose_report(
    results: Sequence[str],
    start_time: datetime,
    settings: MailSettings,
    gif: Optional[bytes] = None,
) -> EmailMessage:
    message = EmailMessage()
    message["To"] = ", ".join(settings.to_addrs)
    message["From"] = settings.from_addr
    message["Subject"] = f"pibal {start_time.strftime('%H:%M:%S')}"
    message.set_content("\n".join(results) + "\n", charset="us-ascii")
    if gif is not None:
        message.add_attachment(
            gif,
            maintype="image",
            subtype="gif",
            disposition="inline",
            filename=MAIL["attachment_name"],
        )
    return message


class MailSpool:
    """Writes report messages to ``mail-1.txt``, ``mail-2.txt``, ..."""

    def __init__(self, settings: MailSettings):
        self.settings = settings
        self.count = 0

    def next_path(self) -> Path:
        self.count += 1
        return Path(self.settings.spool_dir) / MAIL["file_name"].format(count=self.count)

    def send(self, message: EmailMessage) -> Path:
        path = self.next_path()
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(message.as_bytes(policy=SMTP))
        print(f"[Mail] Report written to {path}")
        return path

    def send_report(
        self,
        results: Sequence[str],
        start_time: datetime,
        gif: Optional[bytes] = None,
    ) -> Path:
        return self.send(compose_report(results, start_time, self.settings, gif))
