"""
Message Templates
=================
OTP SMS text.
"""

DEFAULT_OTP_TEMPLATE = (
    "Hi {name}, {code} is your {app_name} verification code, "
    "valid for {minutes} minutes. Do not share with anyone.{signature}"
)


def build_otp_message(
    display_name: str,
    code: str,
    validity_minutes: int,
    app_name: str,
    signature: str = "",
    template: str = DEFAULT_OTP_TEMPLATE,
) -> str:
    """
    Render the OTP message.

    Args:
        display_name: Name to greet the user with
        code: The OTP
        validity_minutes: How long the code stays valid
        app_name: Product name shown in the message
        signature: Sender signature appended at the end (DLT templates need it)
        template: Format string with name, code, app_name, minutes, signature
    """
    return template.format(
        name=display_name,
        code=code,
        app_name=app_name,
        minutes=validity_minutes,
        signature=f" {signature}" if signature else "",
    )
