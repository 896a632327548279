"""
Email background tasks.

Magic-link sign-in emails and organization invite emails.
"""

from volunteer_hub.workers.celery_app import celery_app


@celery_app.task(name="volunteer_hub.workers.email_tasks.send_magic_link_email", bind=True, max_retries=3)
def send_magic_link_email(
    self,  # type: ignore[no-untyped-def]
    to_email: str,
    magic_link_url: str,
) -> dict[str, str]:
    """
    Send a sign-in link via Resend.

    Args:
        to_email: Recipient email address.
        magic_link_url: Single-use sign-in URL.

    Returns:
        Dict with status and message_id.
    """
    try:
        import resend

        from volunteer_hub.core.config import settings

        resend.api_key = settings.RESEND_API_KEY

        params: resend.Emails.SendParams = {
            "from": settings.EMAIL_FROM,
            "to": [to_email],
            "subject": "Your sign-in link for Volunteer Hub",
            "html": f"""
                <h2>Sign in to Volunteer Hub</h2>
                <p>Click the button below to sign in. No password needed.</p>
                <p>
                    <a href="{magic_link_url}"
                       style="background:#2563eb;color:#fff;padding:12px 24px;
                              border-radius:6px;text-decoration:none;display:inline-block;">
                        Sign In
                    </a>
                </p>
                <p>This link expires in {settings.MAGIC_LINK_TTL_MINUTES} minutes and can only be used once.</p>
                <p>If you did not request this email, you can safely ignore it.</p>
            """,
        }

        response = resend.Emails.send(params)
        return {"status": "sent", "message_id": response["id"]}

    except Exception as exc:
        raise self.retry(exc=exc, countdown=60 * (self.request.retries + 1))


@celery_app.task(name="volunteer_hub.workers.email_tasks.send_invitation_email", bind=True, max_retries=3)
def send_invitation_email(
    self,  # type: ignore[no-untyped-def]
    to_email: str,
    org_name: str,
    inviter_name: str,
    role: str,
    invite_url: str,
) -> dict[str, str]:
    """
    Send an invitation email via Resend.

    Args:
        to_email: Recipient email address.
        org_name: Organization display name.
        inviter_name: Name or email of the person who sent the invite.
        role: Role being assigned (admin/member).
        invite_url: Link to the invite page.

    Returns:
        Dict with status and message_id.
    """
    try:
        import resend

        from volunteer_hub.core.config import settings

        resend.api_key = settings.RESEND_API_KEY

        params: resend.Emails.SendParams = {
            "from": settings.EMAIL_FROM,
            "to": [to_email],
            "subject": f"You've been invited to join {org_name} on Volunteer Hub",
            "html": f"""
                <h2>You've been invited to Volunteer Hub</h2>
                <p><strong>{inviter_name}</strong> has invited you to join
                <strong>{org_name}</strong> as a <strong>{role}</strong>.</p>
                <p>
                    <a href="{invite_url}"
                       style="background:#2563eb;color:#fff;padding:12px 24px;
                              border-radius:6px;text-decoration:none;display:inline-block;">
                        View Invitation
                    </a>
                </p>
                <p>This invitation expires in {settings.INVITE_TTL_DAYS} days.</p>
                <p>If you did not expect this invitation, you can safely ignore this email.</p>
            """,
        }

        response = resend.Emails.send(params)
        return {"status": "sent", "message_id": response["id"]}

    except Exception as exc:
        raise self.retry(exc=exc, countdown=60 * (self.request.retries + 1))
