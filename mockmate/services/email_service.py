"""
Email service

Renders `{{VAR}}` templates (files under mockmate/templates/emails, optionally
overridden by `email_templates` rows) and sends them over SMTP in a worker
thread. Every attempt is written to `email_logs`.
"""
import asyncio
import html as html_lib
import re
import smtplib
from datetime import datetime, timezone
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr, make_msgid
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from mockmate.core.config import settings
from mockmate.core.exceptions import NotFoundException
from mockmate.crud import email_log_crud, email_template_crud
from mockmate.models.email import EmailTemplate, EmailTemplateUpsert
from mockmate.models.user import User
from .config_service import config_service

TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates" / "emails"

VARIABLE_PATTERN = re.compile(r"\{\{\s*([A-Za-z0-9_]+)\s*\}\}")
TAG_PATTERN = re.compile(r"<[^>]+>")
BLOCK_PATTERN = re.compile(r"<(script|style|head)[^>]*>.*?</\1>", re.IGNORECASE | re.DOTALL)

# name -> subject, category and sample variables used for previews
TEMPLATES: Dict[str, Dict[str, Any]] = {
    "email_verification": {
        "subject": "Verify Your {{APP_NAME}} Email Address",
        "category": "auth",
        "sample": {"USER_NAME": "Alex", "VERIFICATION_URL": "https://example.com/verify?token=abc", "EXPIRY_HOURS": 24},
    },
    "welcome": {
        "subject": "Welcome to {{APP_NAME}}!",
        "category": "onboarding",
        "sample": {"USER_NAME": "Alex", "DASHBOARD_URL": "https://example.com/dashboard"},
    },
    "password_reset": {
        "subject": "Reset Your {{APP_NAME}} Password",
        "category": "auth",
        "sample": {"USER_NAME": "Alex", "RESET_URL": "https://example.com/reset?token=abc", "EXPIRY_MINUTES": 60},
    },
    "password_changed": {
        "subject": "Password Changed Successfully - {{APP_NAME}}",
        "category": "auth",
        "sample": {"USER_NAME": "Alex", "CHANGED_AT": "2024-01-01 12:00 UTC"},
    },
    "otp_code": {
        "subject": "Your {{APP_NAME}} verification code",
        "category": "auth",
        "sample": {"USER_NAME": "Alex", "OTP_CODE": "123456", "OTP_PURPOSE": "verification", "EXPIRY_MINUTES": 15},
    },
    "credits_purchase": {
        "subject": "Credits Purchase Confirmed - {{APP_NAME}}",
        "category": "billing",
        "sample": {
            "USER_NAME": "Alex", "CREDITS": 10, "PACKAGE_NAME": "Starter", "AMOUNT": "499.00",
            "CURRENCY": "INR", "ORDER_ID": "order_123", "TOTAL_CREDITS": 12,
        },
    },
    "notification": {
        "subject": "{{NOTIFICATION_TITLE}} - {{APP_NAME}}",
        "category": "notification",
        "sample": {
            "USER_NAME": "Alex", "NOTIFICATION_TITLE": "Heads up", "NOTIFICATION_MESSAGE": "Something happened.",
            "ACTION_URL": "https://example.com", "ACTION_TEXT": "Open",
        },
    },
    "generic": {
        "subject": "{{SUBJECT}}",
        "category": "system",
        "sample": {"USER_NAME": "Alex", "SUBJECT": "Hello", "MESSAGE": "This is a message."},
    },
}

OTP_PURPOSES = {
    "email_verification": "email verification",
    "password_reset": "password reset",
    "password_change": "password change",
    "login_2fa": "sign-in",
}


# ==================== Rendering helpers ====================

def render(content: str, variables: Dict[str, Any], escape: bool = False) -> str:
    """Substitute {{VAR}} placeholders; unknown variables render empty

    With `escape` the values are HTML-escaped, which is how HTML bodies are
    rendered so user-supplied names cannot inject markup.
    """
    def replace(match: re.Match) -> str:
        value = variables.get(match.group(1))
        if value is None:
            return ""
        return html_lib.escape(str(value)) if escape else str(value)
    return VARIABLE_PATTERN.sub(replace, content or "")


def extract_variables(content: str) -> List[str]:
    """Placeholder names in order of first appearance"""
    seen: List[str] = []
    for name in VARIABLE_PATTERN.findall(content or ""):
        if name not in seen:
            seen.append(name)
    return seen


def html_to_text(content: str) -> str:
    """Plain-text body derived from HTML"""
    text = BLOCK_PATTERN.sub("", content or "")
    text = re.sub(r"<br\s*/?>|</p>|</h\d>|</tr>", "\n", text, flags=re.IGNORECASE)
    text = html_lib.unescape(TAG_PATTERN.sub("", text))
    lines = [re.sub(r"[ \t]+", " ", line).strip() for line in text.splitlines()]
    return "\n".join(line for line in lines if line)


class EmailService:
    """Template rendering and SMTP delivery"""

    def __init__(self, template_dir: Path = TEMPLATE_DIR):
        self.template_dir = template_dir

    # ==================== Configuration ====================

    async def get_smtp_config(self, db: AsyncSession) -> Dict[str, Any]:
        """SMTP settings; dynamic config values win over the environment"""
        return {
            "host": await config_service.get(db, "smtp_host") or settings.smtp_host,
            "port": int(await config_service.get(db, "smtp_port") or settings.smtp_port),
            "user": await config_service.get(db, "smtp_user") or settings.smtp_user,
            "password": await config_service.get(db, "smtp_password") or settings.smtp_password,
            "from_email": await config_service.get(db, "smtp_from_email") or settings.smtp_from_email,
            "from_name": await config_service.get(db, "smtp_from_name") or settings.smtp_from_name,
            "use_tls": settings.smtp_use_tls,
            "timeout": settings.smtp_timeout,
        }

    async def is_configured(self, db: AsyncSession) -> bool:
        return bool((await self.get_smtp_config(db))["host"])

    async def common_variables(self, db: AsyncSession) -> Dict[str, Any]:
        return {
            "APP_NAME": await config_service.get(db, "app_name", settings.app_name),
            "FRONTEND_URL": settings.frontend_url,
            "SUPPORT_EMAIL": await config_service.get(db, "support_email", settings.smtp_from_email),
            "CURRENT_YEAR": datetime.now(timezone.utc).year,
        }

    # ==================== Templates ====================

    def load_file_template(self, name: str) -> Optional[str]:
        path = self.template_dir / f"{name}.html"
        if not path.is_file():
            return None
        return path.read_text(encoding="utf-8")

    async def get_template(self, db: AsyncSession, name: str) -> Tuple[str, str, Optional[str], str]:
        """
        Resolve a template

        Returns (subject, html, text, source) where source is database / file / fallback.
        """
        override = await email_template_crud.get_by_name(db, name)
        if override is not None and override.is_active:
            return override.subject, override.html_body, override.text_body, "database"

        html = self.load_file_template(name)
        if html is not None:
            subject = TEMPLATES.get(name, {}).get("subject", "{{APP_NAME}}")
            return subject, html, None, "file"

        logger.warning("Email template '{}' not found, using generic template", name)
        return TEMPLATES["generic"]["subject"], self.load_file_template("generic") or "{{MESSAGE}}", None, "fallback"

    async def list_templates(self, db: AsyncSession) -> List[Dict[str, Any]]:
        """Built-in templates merged with database overrides"""
        overrides = {t.name: t for t in await email_template_crud.list_all(db)}
        items = []
        for name, meta in TEMPLATES.items():
            override = overrides.pop(name, None)
            html = override.html_body if override else (self.load_file_template(name) or "")
            items.append({
                "name": name,
                "subject": override.subject if override else meta["subject"],
                "category": override.category if override else meta["category"],
                "source": "database" if override else "file",
                "is_active": override.is_active if override else True,
                "variables": extract_variables(html),
            })
        for name, override in overrides.items():
            items.append({
                "name": name,
                "subject": override.subject,
                "category": override.category,
                "source": "database",
                "is_active": override.is_active,
                "variables": extract_variables(override.html_body),
            })
        return items

    async def get_template_detail(self, db: AsyncSession, name: str) -> Dict[str, Any]:
        if name not in TEMPLATES and await email_template_crud.get_by_name(db, name) is None:
            raise NotFoundException(f"Email template '{name}' not found", code="TEMPLATE_NOT_FOUND")
        subject, html, text, source = await self.get_template(db, name)
        return {
            "name": name,
            "subject": subject,
            "html_body": html,
            "text_body": text,
            "source": source,
            "variables": extract_variables(subject + html),
        }

    async def save_template(
        self, db: AsyncSession, name: str, data: EmailTemplateUpsert, updated_by: Optional[str] = None
    ) -> EmailTemplate:
        """Create or replace the database override of a template"""
        override = await email_template_crud.get_by_name(db, name)
        if override is None:
            override = await email_template_crud.create(
                db, obj_in={"name": name, **data.model_dump(), "updated_by": updated_by}
            )
            logger.info("Email template override '{}' created", name)
        else:
            override = await email_template_crud.update(
                db, db_obj=override, obj_in={**data.model_dump(), "updated_by": updated_by}, skip_none=False
            )
            logger.info("Email template override '{}' updated", name)
        return override

    async def delete_template(self, db: AsyncSession, name: str) -> None:
        """Drop an override; built-in templates fall back to their file"""
        override = await email_template_crud.get_by_name(db, name)
        if override is None:
            raise NotFoundException(f"No stored template named '{name}'", code="TEMPLATE_NOT_FOUND")
        await email_template_crud.delete(db, id=override.id)
        logger.info("Email template override '{}' deleted", name)

    async def preview(
        self,
        db: AsyncSession,
        name: str,
        variables: Optional[Dict[str, Any]] = None,
        html_body: Optional[str] = None,
        subject: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Render a template (or ad-hoc content) with sample data"""
        stored_subject, stored_html, _, source = await self.get_template(db, name)
        merged = {
            **await self.common_variables(db),
            **TEMPLATES.get(name, {}).get("sample", {}),
            **(variables or {}),
        }
        html = render(html_body or stored_html, merged, escape=True)
        return {
            "name": name,
            "source": "request" if html_body else source,
            "subject": render(subject or stored_subject, merged),
            "html": html,
            "text": html_to_text(html),
            "variables": extract_variables(html_body or stored_html),
        }

    # ==================== Sending ====================

    def _deliver(self, smtp: Dict[str, Any], message: MIMEMultipart, to: str) -> None:
        """Blocking SMTP send; runs in a worker thread"""
        if smtp["port"] == 465:
            with smtplib.SMTP_SSL(smtp["host"], smtp["port"], timeout=smtp["timeout"]) as server:
                if smtp["user"]:
                    server.login(smtp["user"], smtp["password"])
                server.sendmail(smtp["from_email"], [to], message.as_string())
            return
        with smtplib.SMTP(smtp["host"], smtp["port"], timeout=smtp["timeout"]) as server:
            if smtp["use_tls"]:
                server.starttls()
            if smtp["user"]:
                server.login(smtp["user"], smtp["password"])
            server.sendmail(smtp["from_email"], [to], message.as_string())

    async def send_email(
        self,
        db: AsyncSession,
        *,
        to: str,
        template_name: str,
        variables: Optional[Dict[str, Any]] = None,
        user_id: Optional[str] = None,
        subject: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Render and send a template

        Never raises for delivery problems; returns {"success": bool, "error"?, "message_id"?}.
        """
        tmpl_subject, tmpl_html, tmpl_text, _ = await self.get_template(db, template_name)
        merged = {**await self.common_variables(db), **(variables or {})}
        rendered_subject = render(subject or tmpl_subject, merged)
        html = render(tmpl_html, merged, escape=True)
        text = render(tmpl_text, merged) if tmpl_text else html_to_text(html)

        smtp = await self.get_smtp_config(db)
        if not smtp["host"]:
            logger.warning("SMTP not configured, skipping '{}' email to {}", template_name, to)
            await email_log_crud.create(db, obj_in={
                "recipient": to, "template_name": template_name, "subject": rendered_subject,
                "status": "skipped", "error": "EMAIL_NOT_CONFIGURED", "user_id": user_id,
            })
            return {"success": False, "error": "EMAIL_NOT_CONFIGURED"}

        message = MIMEMultipart("alternative")
        message["Subject"] = rendered_subject
        message["From"] = formataddr((smtp["from_name"], smtp["from_email"]))
        message["To"] = to
        message_id = make_msgid(domain=smtp["from_email"].split("@")[-1])
        message["Message-ID"] = message_id
        message.attach(MIMEText(text, "plain", "utf-8"))
        message.attach(MIMEText(html, "html", "utf-8"))

        try:
            await asyncio.to_thread(self._deliver, smtp, message, to)
        except (smtplib.SMTPException, OSError) as exc:
            logger.error("Failed to send '{}' email to {}: {}", template_name, to, exc)
            await email_log_crud.create(db, obj_in={
                "recipient": to, "template_name": template_name, "subject": rendered_subject,
                "status": "failed", "error": str(exc)[:1000], "user_id": user_id,
            })
            return {"success": False, "error": str(exc)}

        await email_log_crud.create(db, obj_in={
            "recipient": to, "template_name": template_name, "subject": rendered_subject,
            "status": "sent", "user_id": user_id,
        })
        logger.info("Sent '{}' email to {}", template_name, to)
        return {"success": True, "message_id": message_id}

    # ==================== Helpers ====================

    async def send_verification_email(self, db: AsyncSession, user: User, token: str) -> Dict[str, Any]:
        return await self.send_email(
            db, to=user.email, template_name="email_verification", user_id=user.id,
            variables={
                "USER_NAME": user.first_name,
                "VERIFICATION_URL": f"{settings.frontend_url}/verify-email?token={token}",
                "EXPIRY_HOURS": 24,
            },
        )

    async def send_welcome_email(self, db: AsyncSession, user: User) -> Dict[str, Any]:
        return await self.send_email(
            db, to=user.email, template_name="welcome", user_id=user.id,
            variables={"USER_NAME": user.first_name, "DASHBOARD_URL": f"{settings.frontend_url}/dashboard"},
        )

    async def send_password_reset_email(self, db: AsyncSession, user: User, token: str) -> Dict[str, Any]:
        return await self.send_email(
            db, to=user.email, template_name="password_reset", user_id=user.id,
            variables={
                "USER_NAME": user.first_name,
                "RESET_URL": f"{settings.frontend_url}/reset-password?token={token}",
                "EXPIRY_MINUTES": 60,
            },
        )

    async def send_password_change_confirmation(self, db: AsyncSession, user: User) -> Dict[str, Any]:
        return await self.send_email(
            db, to=user.email, template_name="password_changed", user_id=user.id,
            variables={
                "USER_NAME": user.first_name,
                "CHANGED_AT": datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M UTC"),
            },
        )

    async def send_otp_email(
        self, db: AsyncSession, user: User, code: str, otp_type: str, expiry_minutes: int
    ) -> Dict[str, Any]:
        return await self.send_email(
            db, to=user.email, template_name="otp_code", user_id=user.id,
            variables={
                "USER_NAME": user.first_name,
                "OTP_CODE": code,
                "OTP_PURPOSE": OTP_PURPOSES.get(otp_type, "verification"),
                "EXPIRY_MINUTES": expiry_minutes,
            },
        )

    async def send_credits_purchase_confirmation(
        self, db: AsyncSession, user: User, details: Dict[str, Any]
    ) -> Dict[str, Any]:
        return await self.send_email(
            db, to=user.email, template_name="credits_purchase", user_id=user.id,
            variables={
                "USER_NAME": user.first_name,
                "CREDITS": details.get("credits"),
                "PACKAGE_NAME": details.get("package_name"),
                "AMOUNT": details.get("amount"),
                "CURRENCY": details.get("currency"),
                "ORDER_ID": details.get("order_id"),
                "TOTAL_CREDITS": user.credits,
            },
        )

    async def send_notification(
        self,
        db: AsyncSession,
        user: User,
        title: str,
        message: str,
        action_url: Optional[str] = None,
        action_text: Optional[str] = None,
    ) -> Dict[str, Any]:
        return await self.send_email(
            db, to=user.email, template_name="notification", user_id=user.id,
            variables={
                "USER_NAME": user.first_name,
                "NOTIFICATION_TITLE": title,
                "NOTIFICATION_MESSAGE": message,
                "ACTION_URL": action_url or settings.frontend_url,
                "ACTION_TEXT": action_text or "Open MockMate",
            },
        )

    async def send_test_email(
        self,
        db: AsyncSession,
        to: str,
        template_name: Optional[str] = None,
        variables: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        name = template_name or "generic"
        merged = {
            **TEMPLATES.get(name, {}).get("sample", {}),
            "SUBJECT": "Test email",
            "MESSAGE": "This is a test email. Your email settings are working.",
            **(variables or {}),
        }
        return await self.send_email(db, to=to, template_name=name, variables=merged)


email_service = EmailService()
