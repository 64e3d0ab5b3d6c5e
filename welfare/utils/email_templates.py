# Project
from welfare.data_structures.celebration import DueCelebration
from welfare.data_structures.member import Member
from welfare.data_structures.outgoing_email import EmailContent
from welfare.utils.text_utils import escape, format_long_date, time_until_text


def reminder_subject(member_name: str, label: str, days_until: int) -> str:
    if days_until == 0:
        return f"🎉 Today: {member_name}'s {label}!"
    if days_until == 1:
        return f"📅 Tomorrow: {member_name}'s {label}"

    return f"📅 Upcoming: {member_name}'s {label} in {days_until} days"


def _contact_html(member: Member) -> str:
    lines = []
    if member.phone_number:
        phone = escape(member.phone_number)
        lines.append(f'Phone: <a href="tel:{phone}" style="color: #1e40af;">{phone}</a><br>')
    if member.email:
        email = escape(member.email)
        lines.append(f'Email: <a href="mailto:{email}" style="color: #1e40af;">{email}</a>')

    if not lines:
        return ""

    return (
        '<p style="margin: 20px 0 10px 0; font-weight: bold;">Contact Information:</p>'
        f'<p style="margin: 0; color: #4b5563; font-size: 14px;">{"".join(lines)}</p>'
    )


def render_reminder_email(celebration: DueCelebration, organization_name: str) -> EmailContent:
    member = celebration.member
    label = celebration.special_date.display_label
    when = time_until_text(celebration.days_until)
    occurrence = format_long_date(celebration.occurrence)
    organization = escape(organization_name)

    html = f"""
    <!DOCTYPE html>
    <html>
    <head><meta charset="UTF-8"><title>Upcoming Celebration Reminder</title></head>
    <body style="margin: 0; padding: 0; font-family: Arial, sans-serif; background-color: #f3f4f6;">
      <div style="max-width: 600px; margin: 40px auto; background-color: #ffffff; border-radius: 8px;">
        <div style="background: #1e40af; padding: 30px; text-align: center; color: #ffffff;">
          <h1 style="margin: 0;">🎉 Celebration Reminder</h1>
          <p style="margin: 10px 0 0 0;">{organization}</p>
        </div>
        <div style="padding: 30px; color: #4b5563;">
          <p>This is a friendly reminder about an upcoming celebration:</p>
          <p><strong>Member:</strong><br>{escape(member.full_name)}</p>
          <p><strong>Event:</strong><br>{escape(label)}</p>
          <p><strong>Date:</strong><br>{occurrence}</p>
          <p><strong>Time Until Event:</strong><br>
             <span style="color: #dc2626; font-weight: bold;">{when}</span></p>
          {_contact_html(member)}
          <p>Please take a moment to reach out and celebrate with your colleague!</p>
        </div>
        <div style="background-color: #f3f4f6; padding: 20px; text-align: center; font-size: 12px; color: #6b7280;">
          This is an automated reminder from {organization}
        </div>
      </div>
    </body>
    </html>
    """

    text = (
        f"{organization_name.upper()}\n"
        f"Celebration Reminder\n\n"
        f"This is a friendly reminder about an upcoming celebration:\n\n"
        f"Member: {member.full_name}\n"
        f"Event: {label}\n"
        f"Date: {occurrence}\n"
        f"Time Until Event: {when}\n\n"
        f"Please take a moment to reach out and celebrate with your colleague!\n\n"
        f"---\n"
        f"This is an automated reminder from {organization_name}"
    )

    return EmailContent(
        subject=reminder_subject(member.full_name, label, celebration.days_until),
        html=html,
        text=text
    )


def render_test_email(member: Member, organization_name: str) -> EmailContent:
    html = f"""
    <h1>🎉 Test Email Reminder</h1>
    <p>Hello {escape(member.full_name)},</p>
    <p>This is a test email to confirm your {escape(organization_name)} reminder system is working correctly.</p>
    <p>You will receive similar emails before any special dates you've added.</p>
    """

    text = (
        f"Hello {member.full_name},\n\n"
        f"This is a test email to confirm your {organization_name} reminder system is working correctly.\n"
        f"You will receive similar emails before any special dates you've added."
    )

    return EmailContent(subject=f"Test: {organization_name} Reminder System", html=html, text=text)
