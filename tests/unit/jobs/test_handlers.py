"""
Tests for the per-kind job handlers.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from trigflow.core.exceptions import JobHandlerError
from trigflow.jobs.handlers import (
    HANDLERS,
    check_duplicate,
    classify_entity,
    create_entity,
    log_activity,
    process_completed,
    send_email,
    send_notification,
    set_assignee,
    suggest_assignee,
    update_entity_status,
)
from trigflow.jobs.types import Collaborators, Job
from trigflow.storage.memory import InMemoryRunStorage
from trigflow.types import JobKind, JobMode, RunStatus


def make_job(job_type="test", **variables):
    return Job(key="job-1", type=job_type, variables=variables, process_instance_key="4242")


class TestHandlerTable:
    """Every job kind has a handler with the right mode."""

    def test_all_kinds_covered(self):
        assert set(HANDLERS) == set(JobKind)

    @pytest.mark.parametrize(
        "kind", [JobKind.UPDATE_ENTITY_STATUS, JobKind.SET_ASSIGNEE, JobKind.CREATE_ENTITY]
    )
    def test_fail_capable_kinds(self, kind):
        assert HANDLERS[kind].mode is JobMode.FAIL_CAPABLE

    def test_remaining_kinds_are_best_effort_with_error_payload(self):
        for kind, spec in HANDLERS.items():
            if spec.mode is JobMode.BEST_EFFORT:
                assert spec.on_error is not None, kind

    def test_check_duplicate_error_payload_means_no_duplicate(self):
        payload = HANDLERS[JobKind.CHECK_DUPLICATE].on_error("boom")
        assert payload == {"isDuplicate": False, "duplicateRequestId": 0, "duplicateSimilarity": 0}

    def test_error_flag_payload(self):
        assert HANDLERS[JobKind.SEND_NOTIFICATION].on_error("smtp down") == {
            "notificationSent": False,
            "error": "smtp down",
        }


class TestEntityHandlers:
    """Tests for status, assignee and creation handlers."""

    @pytest.mark.asyncio
    async def test_update_status(self):
        store = AsyncMock()
        result = await update_entity_status(
            make_job(entityId="e-1", newStatus="done"), Collaborators(entity_store=store)
        )

        store.update_status.assert_awaited_once_with("e-1", "done")
        assert result["statusUpdated"] is True
        assert "updatedAt" in result

    @pytest.mark.asyncio
    async def test_update_status_without_store_is_skipped(self):
        result = await update_entity_status(make_job(entityId="e-1", newStatus="done"), Collaborators())
        assert result == {"statusUpdated": False, "reason": "EntityStore not available"}

    @pytest.mark.asyncio
    async def test_update_status_missing_inputs(self):
        store = AsyncMock()
        result = await update_entity_status(make_job(entityId="e-1"), Collaborators(entity_store=store))

        assert result["statusUpdated"] is False
        store.update_status.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_update_status_store_error_propagates(self):
        store = AsyncMock()
        store.update_status.side_effect = RuntimeError("db down")

        with pytest.raises(RuntimeError, match="db down"):
            await update_entity_status(
                make_job(entityId="e-1", newStatus="done"), Collaborators(entity_store=store)
            )

    @pytest.mark.asyncio
    async def test_set_assignee_empty_clears(self):
        store = AsyncMock()
        result = await set_assignee(make_job(entityId="e-1", assigneeId=""), Collaborators(entity_store=store))

        store.update_assignee.assert_awaited_once_with("e-1", None)
        assert result["assigneeSet"] is True

    @pytest.mark.asyncio
    async def test_create_entity_with_link(self):
        store = AsyncMock()
        store.create.return_value = {"id": "new-1", "customId": "REQ-7", "linkId": "link-1"}

        result = await create_entity(
            make_job(
                targetWorkspaceId="ws-2",
                title="Follow up",
                sourceEntityId="e-1",
                createdById="user-1",
            ),
            Collaborators(entity_store=store),
        )

        data, actor = store.create.await_args.args
        assert actor == "user-1"
        assert data["workspaceId"] == "ws-2"
        assert data["status"] == "new"
        assert data["priority"] == "medium"
        assert data["linkType"] == "spawned"
        assert data["processInstanceKey"] == "4242"
        assert result == {
            "entityCreated": True,
            "createdEntityId": "new-1",
            "createdEntityCustomId": "REQ-7",
            "linkId": "link-1",
        }

    @pytest.mark.asyncio
    async def test_create_entity_accepts_object_result(self):
        store = AsyncMock()
        created = MagicMock(id="new-2", customId="REQ-8", linkId=None)
        store.create.return_value = created

        result = await create_entity(
            make_job(targetWorkspaceId="ws-2", title="t"), Collaborators(entity_store=store)
        )

        assert "sourceEntityId" not in store.create.await_args.args[0]
        assert result["createdEntityId"] == "new-2"
        assert result["linkId"] == ""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("variables", "message"),
        [({"title": "t"}, "targetWorkspaceId"), ({"targetWorkspaceId": "ws-2"}, "title")],
    )
    async def test_create_entity_requires_inputs(self, variables, message):
        with pytest.raises(JobHandlerError, match=message):
            await create_entity(make_job(**variables), Collaborators(entity_store=AsyncMock()))


class TestBestEffortHandlers:
    """Tests for notification, email, audit log and AI handlers."""

    @pytest.mark.asyncio
    async def test_send_notification(self):
        notifier = AsyncMock()
        result = await send_notification(
            make_job(userId="u-1", message="hi", entityId="e-1", workspaceId="ws-1"),
            Collaborators(notifier=notifier),
        )

        notifier.notify.assert_awaited_once_with("u-1", "hi", "e-1", "ws-1")
        assert result == {"notificationSent": True}

    @pytest.mark.asyncio
    async def test_send_email_without_sender(self):
        result = await send_email(make_job(to="a@b.c", subject="s"), Collaborators())
        assert result == {"emailSent": False, "reason": "EmailService not available"}

    @pytest.mark.asyncio
    async def test_send_email_reports_sender_result(self):
        sender = AsyncMock()
        sender.send.return_value = False

        result = await send_email(
            make_job(to="a@b.c", subject="s", body="<p>x</p>"), Collaborators(email_sender=sender)
        )

        sender.send.assert_awaited_once_with(to="a@b.c", subject="s", text="<p>x</p>", html="<p>x</p>")
        assert result == {"emailSent": False}

    @pytest.mark.asyncio
    async def test_log_activity_default_description(self):
        audit_log = AsyncMock()
        result = await log_activity(
            make_job(workspaceId="ws-1", action="status_changed", entityId="e-1", actorId="u-1"),
            Collaborators(audit_log=audit_log),
        )

        action, workspace, actor, details, subject = audit_log.log.await_args.args
        assert (action, workspace, actor, subject) == ("status_changed", "ws-1", "u-1", "e-1")
        assert details["description"] == "BPMN: status_changed"
        assert result == {"logged": True}

    @pytest.mark.asyncio
    async def test_classify_without_classifier(self):
        result = await classify_entity(make_job(entityId="e-1"), Collaborators())
        assert result == {"classified": False, "reason": "AI service not available"}

    @pytest.mark.asyncio
    async def test_classify_defaults(self):
        classifier = AsyncMock()
        classifier.classify_and_save.return_value = {"category": "it"}

        result = await classify_entity(make_job(entityId="e-1"), Collaborators(classifier=classifier))

        assert result == {"classified": True, "category": "it", "aiPriority": "medium", "confidence": 0}

    @pytest.mark.asyncio
    async def test_process_completed_updates_run(self):
        runs = InMemoryRunStorage()
        runs.register_run("4242", "run-1", "def-1")

        result = await process_completed(make_job(), Collaborators(run_storage=runs))

        assert result == {"completed": True}
        assert runs.get_run_status("4242") is RunStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_suggest_assignee_picks_first_expert(self):
        assistant = AsyncMock()
        assistant.get_assistance.return_value = {
            "suggestedExperts": [
                {"name": "Ann", "managerId": 7, "department": "IT"},
                {"name": "Bob"},
            ]
        }

        result = await suggest_assignee(make_job(entityId="e-1"), Collaborators(assistant=assistant))

        assert result == {
            "hasSuggestion": True,
            "suggestedAssigneeName": "Ann",
            "suggestedAssigneeManagerId": 7,
            "suggestedAssigneeDepartment": "IT",
        }

    @pytest.mark.asyncio
    async def test_suggest_assignee_no_experts(self):
        assistant = AsyncMock()
        assistant.get_assistance.return_value = {"suggestedExperts": []}

        result = await suggest_assignee(make_job(entityId="e-1"), Collaborators(assistant=assistant))
        assert result == {"hasSuggestion": False}

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("similarity", "duplicate"), [(0.96, True), (0.95, False), (0.5, False)]
    )
    async def test_check_duplicate_threshold(self, similarity, duplicate):
        assistant = AsyncMock()
        assistant.get_assistance.return_value = {
            "similarCases": [{"requestId": 99, "similarity": similarity}]
        }

        result = await check_duplicate(make_job(entityId="e-1"), Collaborators(assistant=assistant))

        assert result["isDuplicate"] is duplicate
        assert result["duplicateRequestId"] == (99 if duplicate else 0)
