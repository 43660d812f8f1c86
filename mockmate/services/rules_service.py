"""
Security rules template service

Firestore rules templates with `${VAR}` placeholders: generation, a light
syntax check and recorded (dry-run) deployments.
"""
import re
from typing import Any, Dict, List, Optional

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from mockmate.core.exceptions import BadRequestException, ConflictException, NotFoundException
from mockmate.crud import rules_deployment_crud, rules_template_crud
from mockmate.models.auth_provider import (
    RulesDeployment,
    RulesDeployRequest,
    RulesTemplate,
    RulesTemplateCreate,
    RulesTemplateUpdate,
)
from mockmate.models.base import utc_now

PLACEHOLDER = re.compile(r"\$\{(\w+)\}")
FUNCTION_CALL = re.compile(r"\b(\w+)\(\)")

DEFAULT_TEMPLATES: List[Dict[str, Any]] = [
    {
        "name": "Basic Authentication Rules",
        "description": "Signed-in users read and write their own documents",
        "category": "authentication",
        "rules_content": """rules_version = '2';
service cloud.firestore {
  match /databases/{database}/documents {
    match /users/{userId} {
      allow read, write: if request.auth != null && request.auth.uid == userId;
    }
    match /public/{document=**} {
      allow read: if request.auth != null;
    }
    match /{document=**} {
      allow read, write: if false;
    }
  }
}""",
        "variables": {},
        "is_default": True,
    },
    {
        "name": "Tenant Isolation",
        "description": "Documents scoped to the caller's tenant claim",
        "category": "multi-tenant",
        "rules_content": """rules_version = '2';
service cloud.firestore {
  match /databases/{database}/documents {
    function isAuthenticated() {
      return request.auth != null;
    }
    function inTenant() {
      return isAuthenticated() && request.auth.token.tenant == '${TENANT_ID}';
    }
    match /tenants/${TENANT_ID}/{document=**} {
      allow read: if inTenant();
      allow write: if inTenant() && request.auth.token.role == '${ADMIN_ROLE}';
    }
  }
}""",
        "variables": {"TENANT_ID": "default", "ADMIN_ROLE": "admin"},
        "is_default": False,
    },
]


def render_rules(content: str, variables: Dict[str, Any]) -> str:
    """Replace `${NAME}` with the variable value; unknown names stay as-is"""
    return PLACEHOLDER.sub(
        lambda m: str(variables[m.group(1)]) if m.group(1) in variables else m.group(0), content
    )


def validate_rules(content: str) -> Dict[str, Any]:
    errors: List[str] = []
    warnings: List[str] = []

    if "rules_version = '2'" not in content:
        errors.append("Rules must specify rules_version = '2'")
    if "service cloud.firestore" not in content:
        errors.append("Rules must define a Firestore service")

    lines = content.split("\n")
    for number, line in enumerate(lines, start=1):
        stripped = line.strip()
        if stripped.startswith("allow") and not stripped.endswith(";"):
            warnings.append(f"Line {number}: Missing semicolon after allow statement")
        for name in FUNCTION_CALL.findall(line):
            if f"function {name}(" not in content:
                warnings.append(f"Line {number}: Function '{name}' may not be defined")

    unresolved = sorted(set(PLACEHOLDER.findall(content)))
    if unresolved:
        warnings.append(f"Unresolved variables: {', '.join(unresolved)}")

    return {"is_valid": not errors, "errors": errors, "warnings": warnings, "lines_checked": len(lines)}


class RulesService:
    """Rules templates and deployments"""

    async def get_template(self, db: AsyncSession, template_id: str) -> RulesTemplate:
        template = await rules_template_crud.get(db, template_id)
        if template is None:
            raise NotFoundException("Rules template not found", code="TEMPLATE_NOT_FOUND")
        return template

    async def list_templates(self, db: AsyncSession, category: Optional[str] = None) -> List[RulesTemplate]:
        return await rules_template_crud.list_all(db, category=category)

    async def create_template(
        self, db: AsyncSession, data: RulesTemplateCreate, created_by: Optional[str] = None
    ) -> RulesTemplate:
        if await rules_template_crud.get_by_name(db, data.name) is not None:
            raise ConflictException(f"Template '{data.name}' already exists", code="TEMPLATE_EXISTS")
        if data.is_default:
            await rules_template_crud.clear_default(db)
        template = await rules_template_crud.create(db, obj_in={**data.model_dump(), "created_by": created_by})
        logger.info("Rules template '{}' created", template.name)
        return template

    async def update_template(self, db: AsyncSession, template_id: str, data: RulesTemplateUpdate) -> RulesTemplate:
        template = await self.get_template(db, template_id)
        updates = data.model_dump(exclude_unset=True, exclude_none=True)
        if "name" in updates and updates["name"] != template.name:
            if await rules_template_crud.get_by_name(db, updates["name"]) is not None:
                raise ConflictException(f"Template '{updates['name']}' already exists", code="TEMPLATE_EXISTS")
        if updates.get("is_default"):
            await rules_template_crud.clear_default(db)
        return await rules_template_crud.update(db, db_obj=template, obj_in=updates)

    async def delete_template(self, db: AsyncSession, template_id: str) -> None:
        template = await self.get_template(db, template_id)
        await rules_template_crud.delete(db, id=template.id)
        logger.info("Rules template '{}' deleted", template.name)

    async def generate(
        self, db: AsyncSession, template_id: str, variables: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """Template defaults merged with the request variables, then substituted"""
        template = await self.get_template(db, template_id)
        merged = {**(template.variables or {}), **(variables or {})}
        return {
            "rules": render_rules(template.rules_content, merged),
            "template": {"id": template.id, "name": template.name, "category": template.category},
            "variables": merged,
            "generated_at": utc_now().isoformat(),
        }

    def validate(self, content: str) -> Dict[str, Any]:
        return validate_rules(content)

    async def deploy(
        self, db: AsyncSession, data: RulesDeployRequest, deployed_by: Optional[str] = None
    ) -> RulesDeployment:
        """Validate and record a deployment; nothing is pushed to Firebase"""
        content = data.rules_content
        if data.template_id:
            content = (await self.generate(db, data.template_id, data.variables))["rules"]
        if not content:
            raise BadRequestException("rules_content or template_id is required", code="RULES_REQUIRED")

        validation = validate_rules(content)
        if not validation["is_valid"]:
            raise BadRequestException(
                "Rules validation failed: " + ", ".join(validation["errors"]),
                code="INVALID_RULES", data=validation,
            )
        deployment = await rules_deployment_crud.create(db, obj_in={
            "template_id": data.template_id,
            "tenant_id": data.tenant_id,
            "rules_content": content,
            "status": "validated",
            "dry_run": True,
            "validation": validation,
            "deployed_by": deployed_by,
        })
        logger.info("Rules deployment {} recorded (dry run)", deployment.id)
        return deployment

    async def history(self, db: AsyncSession, limit: int = 50) -> List[RulesDeployment]:
        return await rules_deployment_crud.history(db, limit=limit)

    async def seed_defaults(self, db: AsyncSession) -> int:
        added = 0
        for item in DEFAULT_TEMPLATES:
            if await rules_template_crud.get_by_name(db, item["name"]) is None:
                await rules_template_crud.create(db, obj_in=dict(item))
                added += 1
        if added:
            logger.info("Seeded {} default rules templates", added)
        return added


rules_service = RulesService()
