"""
Job handlers, one per JobKind.

A handler takes the job and the collaborators and returns the output
variables to complete the job with. Raising means the side effect failed;
the dispatcher turns that into a job failure or an error-flagged completion
depending on the handler's mode.

Missing collaborators are not errors: the handler completes with its
"not applied" flag and a reason.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from typing import Any

from trigflow.core.exceptions import JobHandlerError
from trigflow.core.logger import get_logger
from trigflow.jobs.types import Collaborators, Job, utcnow
from trigflow.types import JobKind, JobMode, RunStatus

logger = get_logger(__name__)

Handler = Callable[[Job, Collaborators], Awaitable[dict[str, Any]]]
ErrorResult = Callable[[str], dict[str, Any]]

DUPLICATE_SIMILARITY_THRESHOLD = 0.95


def _get(obj: Any, name: str, default: Any = None) -> Any:
    if isinstance(obj, Mapping):
        return obj.get(name, default)
    return getattr(obj, name, default)


def _not_available(flag: str, service: str) -> dict[str, Any]:
    logger.warning(f"{service} not available, skipping")
    return {flag: False, "reason": f"{service} not available"}


# ============================================================================
# Fail-capable
# ============================================================================


async def update_entity_status(job: Job, collaborators: Collaborators) -> dict[str, Any]:
    """Variables: entityId, newStatus"""
    entity_id = job.variables.get("entityId")
    new_status = job.variables.get("newStatus")

    if collaborators.entity_store is None:
        return _not_available("statusUpdated", "EntityStore")
    if not entity_id or not new_status:
        return {"statusUpdated": False, "reason": "entityId and newStatus are required"}

    await collaborators.entity_store.update_status(entity_id, new_status)
    logger.info(f"Entity {entity_id} status updated to {new_status}")
    return {"statusUpdated": True, "updatedAt": utcnow().isoformat()}


async def set_assignee(job: Job, collaborators: Collaborators) -> dict[str, Any]:
    """Variables: entityId, assigneeId (null clears the assignee)"""
    entity_id = job.variables.get("entityId")
    assignee_id = job.variables.get("assigneeId") or None

    if collaborators.entity_store is None:
        return _not_available("assigneeSet", "EntityStore")
    if not entity_id:
        return {"assigneeSet": False, "reason": "entityId is required"}

    await collaborators.entity_store.update_assignee(entity_id, assignee_id)
    logger.info(f"Entity {entity_id} assignee set to {assignee_id}")
    return {"assigneeSet": True, "updatedAt": utcnow().isoformat()}


async def create_entity(job: Job, collaborators: Collaborators) -> dict[str, Any]:
    """
    Create an entity, possibly in another workspace.

    Variables: targetWorkspaceId, title (both required), sourceEntityId,
    status ("new"), priority ("medium"), data, linkType ("spawned"),
    createdById.

    Raises:
        JobHandlerError: If a required variable is missing
    """
    if collaborators.entity_store is None:
        return _not_available("entityCreated", "EntityStore")

    variables = job.variables
    if not variables.get("targetWorkspaceId"):
        msg = "targetWorkspaceId is required"
        raise JobHandlerError(msg)
    if not variables.get("title"):
        msg = "title is required"
        raise JobHandlerError(msg)

    data = {
        "workspaceId": variables["targetWorkspaceId"],
        "title": variables["title"],
        "status": variables.get("status") or "new",
        "priority": variables.get("priority") or "medium",
        "data": variables.get("data") or {},
        "processInstanceKey": job.process_instance_key,
    }
    if variables.get("sourceEntityId"):
        data["sourceEntityId"] = variables["sourceEntityId"]
        data["linkType"] = variables.get("linkType") or "spawned"

    created = await collaborators.entity_store.create(data, variables.get("createdById"))
    created_id = _get(created, "id")
    logger.info(f"Created entity {created_id} from job {job.key}")

    return {
        "entityCreated": True,
        "createdEntityId": created_id,
        "createdEntityCustomId": _get(created, "customId", ""),
        "linkId": _get(created, "linkId", "") or "",
    }


# ============================================================================
# Best effort
# ============================================================================


async def send_notification(job: Job, collaborators: Collaborators) -> dict[str, Any]:
    """Variables: userId, message, entityId, workspaceId"""
    variables = job.variables
    user_id = variables.get("userId")
    message = variables.get("message")

    if collaborators.notifier is None:
        return _not_available("notificationSent", "Notifier")
    if not user_id or not message:
        return {"notificationSent": False, "reason": "userId and message are required"}

    await collaborators.notifier.notify(
        user_id, message, variables.get("entityId"), variables.get("workspaceId")
    )
    return {"notificationSent": True}


async def send_email(job: Job, collaborators: Collaborators) -> dict[str, Any]:
    """Variables: to, subject, body"""
    to = job.variables.get("to")
    subject = job.variables.get("subject")
    body = job.variables.get("body") or ""

    if collaborators.email_sender is None or not to or not subject:
        return {"emailSent": False, "reason": "EmailService not available"}

    sent = await collaborators.email_sender.send(to=to, subject=subject, text=body, html=body)
    return {"emailSent": bool(sent)}


async def log_activity(job: Job, collaborators: Collaborators) -> dict[str, Any]:
    """Variables: entityId, workspaceId, action, details, actorId"""
    variables = job.variables
    workspace_id = variables.get("workspaceId")
    action = variables.get("action")
    details = variables.get("details") or {}

    if collaborators.audit_log is None:
        return _not_available("logged", "AuditLog")
    if not workspace_id or not action:
        return {"logged": False, "reason": "workspaceId and action are required"}

    await collaborators.audit_log.log(
        action or "entity_updated",
        workspace_id,
        variables.get("actorId") or None,
        {
            "description": details.get("description") or f"BPMN: {action}",
            "oldValues": details.get("oldValues"),
            "newValues": details.get("newValues"),
            "changedFields": details.get("changedFields"),
        },
        variables.get("entityId") or None,
    )
    return {"logged": True}


async def classify_entity(job: Job, collaborators: Collaborators) -> dict[str, Any]:
    """Variables: entityId"""
    entity_id = job.variables.get("entityId")

    if collaborators.classifier is None or not entity_id:
        logger.warning("Classifier not available, skipping classification")
        return {"classified": False, "reason": "AI service not available"}

    classification = await collaborators.classifier.classify_and_save(entity_id) or {}
    logger.info(
        f"Entity {entity_id} classified: category={classification.get('category')}, "
        f"priority={classification.get('priority')}"
    )
    return {
        "classified": True,
        "category": classification.get("category") or "other",
        "aiPriority": classification.get("priority") or "medium",
        "confidence": classification.get("confidence") or 0,
    }


async def process_completed(job: Job, collaborators: Collaborators) -> dict[str, Any]:
    """Marks the job's run completed in the run store."""
    if collaborators.run_storage is None:
        return _not_available("completed", "RunStorage")

    await collaborators.run_storage.update_run_status(job.process_instance_key, RunStatus.COMPLETED)
    return {"completed": True}


async def suggest_assignee(job: Job, collaborators: Collaborators) -> dict[str, Any]:
    """Variables: entityId. Picks the first expert the assistant suggests."""
    entity_id = job.variables.get("entityId")

    if collaborators.assistant is not None and entity_id:
        assistance = await collaborators.assistant.get_assistance(entity_id) or {}
        experts = assistance.get("suggestedExperts") or []
        if experts:
            top = experts[0]
            logger.info(f"Entity {entity_id} suggested assignee: {_get(top, 'name')}")
            return {
                "hasSuggestion": True,
                "suggestedAssigneeName": _get(top, "name"),
                "suggestedAssigneeManagerId": _get(top, "managerId") or 0,
                "suggestedAssigneeDepartment": _get(top, "department") or "",
            }

    logger.warning("Assistant not available or no suggestions, skipping")
    return {"hasSuggestion": False}


async def check_duplicate(job: Job, collaborators: Collaborators) -> dict[str, Any]:
    """Variables: entityId. A similar case above the threshold is a duplicate."""
    entity_id = job.variables.get("entityId")

    if collaborators.assistant is not None and entity_id:
        assistance = await collaborators.assistant.get_assistance(entity_id) or {}
        for case in assistance.get("similarCases") or []:
            similarity = _get(case, "similarity", 0) or 0
            if similarity > DUPLICATE_SIMILARITY_THRESHOLD:
                logger.info(
                    f"Entity {entity_id} is a potential duplicate of request "
                    f"{_get(case, 'requestId')} (similarity: {similarity})"
                )
                return {
                    "isDuplicate": True,
                    "duplicateRequestId": _get(case, "requestId"),
                    "duplicateSimilarity": similarity,
                }

    return _no_duplicate()


def _no_duplicate(_message: str | None = None) -> dict[str, Any]:
    return {"isDuplicate": False, "duplicateRequestId": 0, "duplicateSimilarity": 0}


# ============================================================================
# Lookup table
# ============================================================================


@dataclass(frozen=True)
class HandlerSpec:
    """
    How a job kind is handled.

    ``on_error`` builds the completion payload for a best-effort handler
    that raised; it is unused for fail-capable handlers.
    """

    handler: Handler
    mode: JobMode
    on_error: ErrorResult | None = None


def _error_flag(flag: str) -> ErrorResult:
    return lambda message: {flag: False, "error": message}


HANDLERS: dict[JobKind, HandlerSpec] = {
    JobKind.UPDATE_ENTITY_STATUS: HandlerSpec(update_entity_status, JobMode.FAIL_CAPABLE),
    JobKind.SET_ASSIGNEE: HandlerSpec(set_assignee, JobMode.FAIL_CAPABLE),
    JobKind.CREATE_ENTITY: HandlerSpec(create_entity, JobMode.FAIL_CAPABLE),
    JobKind.SEND_NOTIFICATION: HandlerSpec(
        send_notification, JobMode.BEST_EFFORT, _error_flag("notificationSent")
    ),
    JobKind.SEND_EMAIL: HandlerSpec(send_email, JobMode.BEST_EFFORT, _error_flag("emailSent")),
    JobKind.LOG_ACTIVITY: HandlerSpec(log_activity, JobMode.BEST_EFFORT, _error_flag("logged")),
    JobKind.CLASSIFY_ENTITY: HandlerSpec(
        classify_entity, JobMode.BEST_EFFORT, _error_flag("classified")
    ),
    JobKind.PROCESS_COMPLETED: HandlerSpec(
        process_completed, JobMode.BEST_EFFORT, _error_flag("completed")
    ),
    JobKind.SUGGEST_ASSIGNEE: HandlerSpec(
        suggest_assignee, JobMode.BEST_EFFORT, _error_flag("hasSuggestion")
    ),
    JobKind.CHECK_DUPLICATE: HandlerSpec(check_duplicate, JobMode.BEST_EFFORT, _no_duplicate),
}
