"""Individualized message content for alert notifications and action reminders."""

from dataclasses import dataclass
from datetime import date
from html import escape

from ..core.security import hash_content
from ..models import AffectedClientLink, ClientAction, RegulatoryAlert, RiskLevel, Severity
from .recipients import Recipient
from .transport import OutboundMessage

DEFAULT_GREETING = "Sehr geehrte Damen und Herren"


# =============================================================================
# LABELS & COLORS
# =============================================================================

SEVERITY_LABELS = {
    Severity.CRITICAL: "Kritisch",
    Severity.HIGH: "Hoch",
    Severity.MEDIUM: "Mittel",
    Severity.INFO: "Info",
}

SEVERITY_COLORS = {
    Severity.CRITICAL: "#dc2626",  # Red
    Severity.HIGH: "#d97706",      # Amber
    Severity.MEDIUM: "#16654e",    # Green
    Severity.INFO: "#6b7280",      # Gray
}

RISK_LABELS = {
    RiskLevel.HIGH: "Hoch",
    RiskLevel.MEDIUM: "Mittel",
    RiskLevel.LOW: "Niedrig",
}

RISK_COLORS = {
    RiskLevel.HIGH: "#dc2626",
    RiskLevel.MEDIUM: "#d97706",
    RiskLevel.LOW: "#16654e",
}


def alerts_page_url(portal_url: str) -> str:
    return f"{portal_url.rstrip('/')}/portal/alerts"


def content_hash(message: OutboundMessage) -> str:
    """Fingerprint of what a recipient was sent (subject + body)."""
    return hash_content(f"{message.subject}\n{message.html}")


def _greeting(recipient: Recipient) -> str:
    return escape(recipient.name or DEFAULT_GREETING)


def _wrap(title_color: str, heading: str, body: str) -> str:
    return f"""
<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
</head>
<body style="font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, Arial, sans-serif;
             line-height: 1.6; color: #374151; max-width: 600px; margin: 0 auto; padding: 20px;">

    <div style="background-color: {title_color}; color: white; padding: 16px; border-radius: 8px 8px 0 0;">
        <h1 style="margin: 0; font-size: 18px;">{heading}</h1>
    </div>

    <div style="border: 1px solid #E5E7EB; border-top: none; padding: 24px; border-radius: 0 0 8px 8px;">
{body}
    </div>
</body>
</html>
"""


# =============================================================================
# ALERT NOTIFICATION
# =============================================================================


def build_alert_message(
    alert: RegulatoryAlert,
    link: AffectedClientLink,
    recipient: Recipient,
    portal_url: str,
) -> OutboundMessage:
    """Message for one recipient of one affected organization."""
    org_name = escape(link.organization.name if link.organization else "Ihr Unternehmen")
    severity_label = SEVERITY_LABELS.get(alert.severity, "Mittel")
    risk_label = RISK_LABELS.get(link.risk, "Mittel")
    risk_color = RISK_COLORS.get(link.risk, "#d97706")

    parts = [f'        <p style="font-size: 13px; color: #6b7280;">{severity_label}']
    if alert.category:
        parts[0] += f" &middot; {escape(alert.category)}"
    parts[0] += "</p>"

    parts.append(f'        <h2 style="margin-top: 0;">{escape(alert.title)}</h2>')
    parts.append(f"        <p>Guten Tag {_greeting(recipient)},</p>")
    if alert.summary:
        parts.append(f"        <p>{escape(alert.summary)}</p>")

    impact = [
        f'        <div style="border: 1px solid {risk_color}; border-radius: 8px; padding: 16px; margin: 16px 0;">',
        f'            <strong style="color: {risk_color};">Auswirkung auf {org_name}: {risk_label}</strong>',
    ]
    if link.reason:
        impact.append(f"            <p>{escape(link.reason)}</p>")
    recommendation = link.comment or alert.comment
    if recommendation:
        impact.append(
            "            <p><strong>Empfehlung:</strong> "
            f"{escape(recommendation)}</p>"
        )
    impact.append("        </div>")
    parts.extend(impact)

    if alert.legal_basis:
        legal = f"        <p><strong>Rechtsgrundlage:</strong> {escape(alert.legal_basis)}"
        if alert.deadline:
            legal += f" &middot; <strong>Frist:</strong> {escape(alert.deadline)}"
        parts.append(legal + "</p>")
    elif alert.deadline:
        parts.append(f"        <p><strong>Frist:</strong> {escape(alert.deadline)}</p>")

    parts.append(
        f'        <p><a href="{escape(alerts_page_url(portal_url))}">Im Portal ansehen</a></p>'
    )
    if alert.source_link:
        parts.append(
            f'        <p><a href="{escape(alert.source_link)}">Originalquelle ansehen</a></p>'
        )

    return OutboundMessage(
        to=recipient.email,
        subject=f"Regulatorische Meldung: {alert.title}",
        html=_wrap(SEVERITY_COLORS.get(alert.severity, "#16654e"), "Regulatorische Meldung", "\n".join(parts)),
        recipient_name=recipient.name,
    )


# =============================================================================
# ACTION REMINDER
# =============================================================================


@dataclass(frozen=True)
class ReminderWording:
    subject: str
    label: str
    color: str


def build_reminder_message(
    action: ClientAction,
    wording: ReminderWording,
    recipient: Recipient,
    alert_title: str,
    org_name: str,
    portal_url: str,
) -> OutboundMessage:
    """Due-date reminder for one client action."""
    due_label = action.due or (action.due_date.strftime("%d.%m.%Y") if isinstance(action.due_date, date) else "")

    body = "\n".join([
        f"        <p>Guten Tag {_greeting(recipient)},</p>",
        f"        <p>Eine Massnahme für {escape(org_name)} erfordert Ihre Aufmerksamkeit:</p>",
        f'        <p style="font-size: 16px;"><strong>{escape(action.text)}</strong></p>',
        f"        <p>Fällig: {escape(due_label)}</p>",
        f'        <p style="color: #6b7280;">Zur Meldung: {escape(alert_title)}</p>',
        f'        <p><a href="{escape(alerts_page_url(portal_url))}">Im Portal ansehen</a></p>',
    ])

    return OutboundMessage(
        to=recipient.email,
        subject=wording.subject,
        html=_wrap(wording.color, wording.label, body),
        recipient_name=recipient.name,
    )
