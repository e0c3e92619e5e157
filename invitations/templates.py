"""HTML templates for invitation emails and RSVP response pages."""
from typing import Dict

import jinja2
from bs4 import BeautifulSoup

from processor.formatting import format_event_type, format_long_date
from processor.models import Event, Guest, RsvpStatus

INVITATION_SUBJECT = "You're invited: {name}"

_environment = jinja2.Environment(autoescape=True, trim_blocks=True, lstrip_blocks=True)

INVITATION_TEMPLATE = _environment.from_string("""<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>Event Invitation</title>
    <style>
        body { font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; margin: 0; padding: 20px; background-color: #f9fafb; }
        .container { max-width: 600px; margin: 0 auto; background: white; border-radius: 12px; overflow: hidden; }
        .header { background: linear-gradient(135deg, #0ea5e9, #3b82f6); color: white; padding: 30px; text-align: center; }
        .content { padding: 30px; }
        .event-details { background: #f8fafc; border-radius: 8px; padding: 20px; margin: 20px 0; }
        .detail-label { font-weight: 600; color: #374151; width: 100px; display: inline-block; }
        .detail-value { color: #6b7280; }
        .rsvp-section { text-align: center; margin: 30px 0; }
        .rsvp-button { display: inline-block; padding: 12px 24px; border-radius: 8px; text-decoration: none; font-weight: 600; color: white; }
        .accept { background: #10b981; }
        .maybe { background: #f59e0b; }
        .decline { background: #ef4444; }
        .footer { background: #f8fafc; padding: 20px; text-align: center; color: #6b7280; font-size: 14px; }
    </style>
</head>
<body>
    <div class="container">
        <div class="header">
            <h1>You're Invited!</h1>
            <p>Hi {{ guest_name }}, we'd love to have you join us for this special event</p>
        </div>
        <div class="content">
            <h2>Event Details</h2>
            <div class="event-details">
{% for label, value in details %}
                <div class="detail-row">
                    <span class="detail-label">{{ label }}:</span>
                    <span class="detail-value">{{ value }}</span>
                </div>
{% endfor %}
            </div>
            <p>{{ description }}</p>
            <div class="rsvp-section">
                <h3>Please let us know if you can attend</h3>
                <a href="{{ links.accepted }}" class="rsvp-button accept">Yes, I'll be there</a>
                <a href="{{ links.maybe }}" class="rsvp-button maybe">Maybe</a>
                <a href="{{ links.declined }}" class="rsvp-button decline">Can't make it</a>
            </div>
        </div>
        <div class="footer">
            <p>This invitation was sent via Event Manager</p>
            <p>If you have any questions, please contact the event organizer</p>
        </div>
    </div>
</body>
</html>
""")

RESPONSE_PAGE_TEMPLATE = _environment.from_string("""<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{{ title }}</title>
</head>
<body style="font-family: sans-serif; text-align: center; padding: 40px;">
    <h1>{{ title }}</h1>
    <p>{{ message }}</p>
</body>
</html>
""")

RESPONSE_MESSAGES = {
    RsvpStatus.accepted: "Great, we'll see you there!",
    RsvpStatus.maybe: "Thanks, we've noted that you might attend.",
    RsvpStatus.declined: "Sorry you can't make it. Thanks for letting us know.",
}


def response_link(base_url: str, token: str) -> str:
    """Build the response URL for one token."""
    return f"{base_url.rstrip('/')}/rsvp-response?token={token}"


def render_invitation(
    event: Event,
    guest: Guest,
    tokens: Dict[RsvpStatus, str],
    base_url: str
) -> str:
    """
    Render the invitation email body.

    Args:
        event: Event the guest is invited to
        guest: Invited guest
        tokens: Response token for each of accepted, maybe and declined
        base_url: Base URL of the RSVP response endpoint

    Returns:
        HTML document
    """
    details = [
        ('Event', event.name),
        ('Date', format_long_date(event.date)),
        ('Time', event.time),
        ('Location', event.location),
        ('Type', format_event_type(event.type)),
        ('Theme', event.theme),
    ]
    links = {
        status.value: response_link(base_url, token)
        for status, token in tokens.items()
    }
    return INVITATION_TEMPLATE.render(
        guest_name=guest.name,
        details=details,
        description=event.description,
        links=links
    )


def html_to_text(html: str) -> str:
    """
    Derive a plain-text alternative from an HTML email.

    Links are kept as 'label: url' so they remain usable in text clients.

    Args:
        html: HTML document

    Returns:
        Plain text with one line per block of content
    """
    soup = BeautifulSoup(html, 'html.parser')
    if soup.head:
        soup.head.decompose()
    for anchor in soup.find_all('a'):
        anchor.replace_with(f"{anchor.get_text(strip=True)}: {anchor.get('href')}")

    lines = [line.strip() for line in soup.get_text('\n').splitlines()]
    return '\n'.join(line for line in lines if line)


def render_response_page(status: RsvpStatus = None) -> str:
    """Render the page shown after a response link is followed."""
    if status is None:
        return RESPONSE_PAGE_TEMPLATE.render(
            title="Invalid or expired link",
            message="This RSVP link is no longer valid. Please contact the event organizer."
        )
    return RESPONSE_PAGE_TEMPLATE.render(
        title="Thank you for your response",
        message=RESPONSE_MESSAGES[status]
    )
