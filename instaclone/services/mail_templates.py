"""Transactional email templates."""

from dataclasses import dataclass
from html import escape

_STYLES = """
    .email-container { max-width: 600px; margin: 0 auto; font-family: Arial, sans-serif; }
    .header { background: linear-gradient(45deg, #f09433 0%,#e6683c 25%,#dc2743 50%,#cc2366 75%,#bc1888 100%); color: white; padding: 20px; text-align: center; }
    .content { padding: 30px; background-color: #f9f9f9; }
    .otp-box { background: white; border: 2px solid #e1306c; padding: 20px; text-align: center; margin: 20px 0; border-radius: 8px; }
    .otp-code { font-size: 32px; font-weight: bold; color: #e1306c; letter-spacing: 8px; }
    .reset-button { display: inline-block; background: #e1306c; color: white; padding: 15px 30px; text-decoration: none; border-radius: 8px; margin: 20px 0; }
    .footer { padding: 20px; text-align: center; color: #666; font-size: 14px; }
"""


@dataclass(frozen=True)
class EmailTemplate:
    """Rendered email content."""

    subject: str
    html_content: str
    text_content: str


def _wrap_html(title: str, body: str) -> str:
    return f"""<!DOCTYPE html>
<html>
<head>
  <style>{_STYLES}</style>
</head>
<body>
  <div class="email-container">
    <div class="header">
      <h1>{title}</h1>
    </div>
    <div class="content">
{body}
    </div>
    <div class="footer">
      <p>&copy; Instagram Clone. All rights reserved.</p>
    </div>
  </div>
</body>
</html>"""


def otp_verification_email(user_name: str, otp: str, expires_in_minutes: int) -> EmailTemplate:
    """Generate the email carrying a verification code."""
    name = escape(user_name)
    body = f"""      <h2>Hi {name}!</h2>
      <p>Thank you for joining our Instagram Clone app. To complete your registration, please verify your email address using the OTP below:</p>
      <div class="otp-box">
        <p>Your verification code is:</p>
        <div class="otp-code">{escape(otp)}</div>
        <p><small>This code will expire in {expires_in_minutes} minutes</small></p>
      </div>
      <p>If you didn't create this account, please ignore this email.</p>"""
    text = f"""Hi {user_name}!

Welcome to Instagram Clone! Your verification code is: {otp}

This code will expire in {expires_in_minutes} minutes.

If you didn't create this account, please ignore this email.
"""
    return EmailTemplate(
        subject="Verify Your Instagram Clone Account",
        html_content=_wrap_html("Welcome to Instagram Clone!", body),
        text_content=text,
    )


def password_reset_email(user_name: str, reset_link: str, expires_in_minutes: int) -> EmailTemplate:
    """Generate the email carrying a password reset link."""
    name = escape(user_name)
    link = escape(reset_link, quote=True)
    body = f"""      <h2>Hi {name}!</h2>
      <p>We received a request to reset your password for your Instagram Clone account.</p>
      <p>Click the button below to reset your password:</p>
      <div style="text-align: center;">
        <a href="{link}" class="reset-button">Reset Password</a>
      </div>
      <p>If you didn't request this password reset, please ignore this email. Your password will remain unchanged.</p>
      <p><small>This link will expire in {expires_in_minutes} minutes.</small></p>"""
    text = f"""Hi {user_name}!

We received a request to reset your password for your Instagram Clone account.

Please visit this link to reset your password: {reset_link}

If you didn't request this password reset, please ignore this email.
This link will expire in {expires_in_minutes} minutes.
"""
    return EmailTemplate(
        subject="Reset Your Instagram Clone Password",
        html_content=_wrap_html("Password Reset Request", body),
        text_content=text,
    )
