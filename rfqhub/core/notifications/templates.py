from html import escape

from rfqhub.config import settings

BRAND_BLUE = "#4F46E5"
BRAND_GREEN = "#10B981"
BRAND_AMBER = "#F59E0B"


def app_link(path: str) -> str:
    return f"{settings.APP_URL.rstrip('/')}/{path.lstrip('/')}"


def render_email(
    heading: str,
    message: str,
    action_url: str | None = None,
    action_label: str = "View Details",
    accent: str = BRAND_BLUE,
) -> str:
    button = ""
    if action_url:
        button = (
            f'<a href="{escape(action_url)}" style="display: inline-block; background: {accent}; '
            f'color: white; padding: 12px 24px; border-radius: 8px; text-decoration: none; '
            f'margin-top: 16px;">{escape(action_label)}</a>'
        )
    return f"""
        <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
            <div style="background: {accent}; color: white; padding: 20px; border-radius: 12px 12px 0 0;">
                <h2 style="margin: 0;">RFQHub</h2>
            </div>
            <div style="padding: 24px; background: #fff; border: 1px solid #e5e5e5; border-top: none; border-radius: 0 0 12px 12px;">
                <h3 style="margin-top: 0;">{escape(heading)}</h3>
                <p style="color: #666; line-height: 1.6;">{escape(message)}</p>
                {button}
            </div>
        </div>
        """
