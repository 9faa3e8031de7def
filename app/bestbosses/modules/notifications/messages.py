"""
Email templates for the four notification types.

Values in `data` are plain strings supplied by the lifecycle service; they are
HTML-escaped here, URLs included.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any
from urllib.parse import quote

from markupsafe import escape

from app.bestbosses.errors import NotificationError

CONFIRMATION = "confirmation"
NOMINATION_SUBMITTED = "nomination_submitted"
NOMINATION_APPROVED_NOMINATOR = "nomination_approved_nominator"
NOMINATION_APPROVED_BOSS = "nomination_approved_boss"

NOTIFICATION_TYPES = frozenset(
    {CONFIRMATION, NOMINATION_SUBMITTED, NOMINATION_APPROVED_NOMINATOR, NOMINATION_APPROVED_BOSS}
)

LINKEDIN_ORGANIZATION_ID = "99177270"
SIGNATURE = "The Best Bosses Team"


@dataclass(frozen=True)
class EmailContent:
    subject: str
    html: str
    text: str


def _v(data: dict[str, Any], key: str) -> str:
    value = data.get(key)
    return "" if value is None else str(value)


def linkedin_share_url(text: str, url: str | None = None) -> str:
    out = f"https://www.linkedin.com/feed/?shareActive=true&text={quote(text, safe='')}"
    if url:
        out += f"&url={quote(url, safe='')}"
    return out


def linkedin_add_certification_url(cert_url: str, issued: date) -> str:
    return (
        "https://www.linkedin.com/profile/add?startTask=CERTIFICATION_NAME"
        f"&name={quote('Certified Best Boss', safe='')}"
        f"&organizationId={LINKEDIN_ORGANIZATION_ID}"
        f"&issueYear={issued.year}&issueMonth={issued.month}"
        f"&certUrl={quote(cert_url, safe='')}"
    )


def job_posting_mailto(profile_url: str) -> str:
    body = (
        "Just forward this email to your recruiter:\n\n"
        "Can you please add the following bullet to our 'What We Offer' section:\n\n"
        f"Work with a BestBosses.org-certified top manager. Learn more here: {profile_url}"
    )
    return f"mailto:?subject={quote('Add to My Job Posting', safe='')}&body={quote(body, safe='')}"


def _confirmation(data: dict[str, Any], issued: date) -> EmailContent:
    link = _v(data, "confirmation_link")
    html = (
        "<h1>Thanks so much for registering for Best Bosses!</h1>"
        "<p>Please click this link to confirm your registration:</p>"
        f'<p><a href="{escape(link)}">Confirm your email</a></p>'
        f"<p>Thanks so much!</p><p>-{SIGNATURE}</p>"
    )
    text = (
        "Thanks so much for registering for Best Bosses!\n\n"
        f"Please confirm your registration: {link}\n\n-{SIGNATURE}\n"
    )
    return EmailContent("Please confirm your Best Bosses registration", html, text)


def _submitted(data: dict[str, Any], issued: date) -> EmailContent:
    first = _v(data, "nominator_first_name")
    boss = _v(data, "boss_name")
    html = (
        f"<p>Hi {escape(first)},</p>"
        f"<p>We've received your nomination for {escape(boss)}. Thank you for taking the time to "
        "recognize outstanding leadership through Best Bosses!</p>"
        "<p>Our team will now review your submission to ensure it meets our publishing standards. "
        "Once it is approved, we will notify you with the live listing and full access to our "
        "directory of amazing leaders.</p>"
        f"<p>Truly appreciated,<br>{SIGNATURE}</p>"
    )
    text = (
        f"Hi {first},\n\n"
        f"We've received your nomination for {boss}. Our team will review it and notify you "
        "once it is approved.\n\n"
        f"Truly appreciated,\n{SIGNATURE}\n"
    )
    return EmailContent("Thank you for your nomination!", html, text)


def _approved_nominator(data: dict[str, Any], issued: date) -> EmailContent:
    first = _v(data, "nominator_first_name")
    boss = _v(data, "boss_name")
    directory_url = _v(data, "directory_url")
    profile_url = _v(data, "boss_profile_url")
    share = linkedin_share_url(
        f"\U0001F3C6 Congratulations to {boss} for being recognized as a Certified #BestBoss!\n\n"
        "Who's a manager who made a big difference in your career?\n\n"
        "Give 'em a little ❤️ today!",
        profile_url,
    )
    html = (
        f"<p>Hi {escape(first)},</p>"
        f"<p>Great news: Your nomination of {escape(boss)} was approved!</p>"
        "<p>Which means you now have full access to the Best Bosses directory: "
        f'<a href="{escape(directory_url)}">View Directory</a></p>'
        "<p>And to help grow the list, would you mind doing us a small but massively important favor?</p>"
        f'<p><a href="{escape(share)}">Share the love on LinkedIn</a> - and help others pay it forward too!</p>'
        f"<p>Truly appreciated,<br>{SIGNATURE}</p>"
    )
    text = (
        f"Hi {first},\n\n"
        f"Great news: Your nomination of {boss} was approved!\n\n"
        f"You now have full access to the directory: {directory_url}\n"
        f"Their profile: {profile_url}\n"
        f"Share on LinkedIn: {share}\n\n"
        f"Truly appreciated,\n{SIGNATURE}\n"
    )
    return EmailContent(f"Your nomination of {boss} was approved!", html, text)


def _approved_boss(data: dict[str, Any], issued: date) -> EmailContent:
    first = _v(data, "boss_first_name")
    nominator = _v(data, "nominator_name")
    review = _v(data, "review")
    profile_url = _v(data, "boss_profile_url")
    certificate_url = _v(data, "certificate_url") or profile_url
    share = linkedin_share_url(
        f"Happy to be nominated by {nominator} as a #BestBoss.\n\n"
        "Who's a manager who made a big difference in your career?",
        profile_url,
    )
    add_cert = linkedin_add_certification_url(profile_url, issued)
    mailto = job_posting_mailto(profile_url)
    html = (
        f"<p>Hi {escape(first)},</p>"
        f"<p>Congrats! You've just been named a Best Boss by {escape(nominator)}.</p>"
        "<p>Here's what they had to say about you:</p>"
        f'<blockquote>"{escape(review)}"</blockquote>'
        "<p>At BestBosses.org (the internet's only verified manager review site), we fundamentally "
        "believe the best bosses deserve to be recognized - and to get the best talent on their teams.</p>"
        "<p>So be sure to share your award today:</p>"
        f'<p><strong>1) <a href="{escape(certificate_url)}">Download Your Certificate</a></strong></p>'
        f'<p><strong>2) <a href="{escape(share)}">Post on LinkedIn</a></strong></p>'
        f'<p><strong>3) <a href="{escape(add_cert)}">Add to LinkedIn Profile</a></strong></p>'
        f'<p><strong>4) <a href="{escape(mailto)}">Add to a Job Posting</a></strong></p>'
        f"<p>Congrats again!<br>-{SIGNATURE}</p>"
    )
    text = (
        f"Hi {first},\n\n"
        f"Congrats! You've just been named a Best Boss by {nominator}.\n\n"
        f'"{review}"\n\n'
        f"Download your certificate: {certificate_url}\n"
        f"Post on LinkedIn: {share}\n"
        f"Add to LinkedIn profile: {add_cert}\n\n"
        f"Congrats again!\n-{SIGNATURE}\n"
    )
    return EmailContent(f"{nominator} Nominated You As a Best Boss!", html, text)


_BUILDERS = {
    CONFIRMATION: _confirmation,
    NOMINATION_SUBMITTED: _submitted,
    NOMINATION_APPROVED_NOMINATOR: _approved_nominator,
    NOMINATION_APPROVED_BOSS: _approved_boss,
}


def compose_message(kind: str, data: dict[str, Any], *, issued: date | None = None) -> EmailContent:
    builder = _BUILDERS.get(kind)
    if builder is None:
        raise NotificationError(f"Unknown notification type: {kind!r}")
    return builder(data, issued or date.today())
