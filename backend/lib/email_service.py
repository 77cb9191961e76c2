"""
=============================================================================
EMAIL SERVICE - Email / email-to-SMS delivery over SMTP
=============================================================================
Carrier gateways turn an email into a text message, e.g.

    5551234567@vtext.com       (Verizon)
    5551234567@tmomail.net     (T-Mobile)
    5551234567@txt.att.net     (AT&T)

so the same SMTP send covers "email me" and "text me". Gateways show the
subject in front of the body, which is why the subject is empty by default.

Gmail needs an app password (EMAIL_PASS), not the account password.
=============================================================================
"""

import smtplib
import ssl
from email.charset import QP, Charset
from email.mime.text import MIMEText
from typing import List, Union


class EmailSMSService:
    """
    Usage:
        mailer = EmailSMSService("me@gmail.com", "app-password", "5551234567@vtext.com")
        mailer.send("Solar production (2024-01-01): 23.40 kWh")
    """

    def __init__(self, sender: str, password: str, recipients: Union[str, List[str]],
                 smtp_host: str = "smtp.gmail.com", smtp_port: int = 587,
                 subject: str = "", timeout: float = 20):
        self.sender = sender
        self.password = password
        if isinstance(recipients, str):
            recipients = [r.strip() for r in recipients.split(",") if r.strip()]
        if not recipients:
            raise ValueError("at least one recipient is required")
        self.recipients = recipients
        self.smtp_host = smtp_host
        self.smtp_port = smtp_port
        self.subject = subject
        self.timeout = timeout

    def build_message(self, text: str) -> MIMEText:
        # Gateways pass the body through as-is: plain ASCII goes out 7bit,
        # anything else quoted-printable rather than base64.
        if text.isascii():
            msg = MIMEText(text, "plain", "us-ascii")
        else:
            charset = Charset("utf-8")
            charset.body_encoding = QP
            msg = MIMEText(text, "plain", charset)
        msg["From"] = self.sender
        msg["To"] = ", ".join(self.recipients)
        msg["Subject"] = self.subject
        return msg

    def send(self, text: str) -> bool:
        """
        Send one message. Returns False (and prints why) if SMTP fails.
        """
        msg = self.build_message(text)
        context = ssl.create_default_context()
        try:
            if self.smtp_port == 465:
                # Implicit TLS
                with smtplib.SMTP_SSL(self.smtp_host, self.smtp_port, timeout=self.timeout,
                                      context=context) as server:
                    server.login(self.sender, self.password)
                    server.sendmail(self.sender, self.recipients, msg.as_string())
            else:
                # STARTTLS (587)
                with smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=self.timeout) as server:
                    server.ehlo()
                    server.starttls(context=context)
                    server.ehlo()
                    server.login(self.sender, self.password)
                    server.sendmail(self.sender, self.recipients, msg.as_string())
        except (smtplib.SMTPException, OSError) as e:
            print(f"Failed to send email: {e}")
            return False

        print(f"SMS sent: {text}")
        return True
