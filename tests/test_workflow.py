"""Tests for the API workflow sequencer."""

import pytest
from playwright.async_api import Error as PlaywrightError

from sitecheck.engine.workflow import (
    _MISSING,
    WorkflowContext,
    WorkflowSequencer,
    check_response,
    resolve_path,
    status_matches,
)
from sitecheck.errors import ConfigurationError
from sitecheck.models.workflow import ResponseCheck, Workflow, WorkflowStep

from conftest import FakeResponse, FakeUserService

BASE = "https://api.test"


def _register_step(**overrides) -> WorkflowStep:
    fields = dict(
        name="Register user",
        method="POST",
        endpoint="/users",
        credential="gorest",
        body={"name": "Test {{$timestamp}}", "email": "qa{{$timestamp}}@example.com"},
        expect="2xx",
        checks=[ResponseCheck(path="id", op="exists")],
        creates="user",
    )
    fields.update(overrides)
    return WorkflowStep(**fields)


def _delete_user_step() -> WorkflowStep:
    return WorkflowStep(
        name="Delete user",
        method="DELETE",
        endpoint="/users/{{user_id}}",
        credential="gorest",
        releases="user",
        verify_gone=True,
    )


def _account_workflow(read_check: ResponseCheck | None = None, cleanup: bool = True) -> Workflow:
    return Workflow(
        name="Account lifecycle",
        base_url=BASE,
        steps=[
            _register_step(),
            WorkflowStep(
                name="Read user",
                endpoint="/users/{{user_id}}",
                credential="gorest",
                checks=[read_check or ResponseCheck(path="id", op="exists")],
            ),
        ],
        cleanup=[_delete_user_step()] if cleanup else [],
    )


class TestWorkflowContext:
    """Tests for variable rendering."""

    def test_renders_bound_and_dynamic_vars(self):
        ctx = WorkflowContext({"user_id": 42})
        rendered = ctx.render({"url": "/users/{{user_id}}", "tags": ["{{$timestamp}}"], "n": 1})

        assert rendered["url"] == "/users/42"
        assert rendered["tags"][0].isdigit()
        assert rendered["n"] == 1

    def test_timestamp_fixed_for_one_run(self):
        ctx = WorkflowContext()
        assert ctx.render("{{$timestamp}}") == ctx.render("{{$timestamp}}")

    def test_unknown_var_left_literal(self, caplog):
        ctx = WorkflowContext()
        with caplog.at_level("WARNING"):
            assert ctx.render("/users/{{nope}}") == "/users/{{nope}}"
        assert "nope" in caplog.text


class TestResolvePath:
    """Tests for JSON path resolution."""

    DATA = {
        "Results": [
            {"Variable": "Make", "Value": "MERCEDES-BENZ"},
            {"Variable": "Model Year", "Value": "2019"},
        ],
        "meta": {"count": 2},
    }

    def test_root(self):
        assert resolve_path(self.DATA, "$") is self.DATA

    def test_nested_and_index(self):
        assert resolve_path(self.DATA, "meta.count") == 2
        assert resolve_path(self.DATA, "Results.0.Value") == "MERCEDES-BENZ"
        assert resolve_path(self.DATA, "Results.-1.Variable") == "Model Year"

    def test_wildcard(self):
        assert resolve_path(self.DATA, "Results.*.Value") == ["MERCEDES-BENZ", "2019"]

    def test_missing(self):
        assert resolve_path(self.DATA, "meta.total") is _MISSING
        assert resolve_path(self.DATA, "Results.5") is _MISSING
        assert resolve_path([1, 2], "*.x") == []


class TestStatusMatches:
    """Tests for expected status matching."""

    def test_class(self):
        assert status_matches(201, "2xx") is True
        assert status_matches(401, "2xx") is False
        assert status_matches(401, "4xx") is True

    def test_exact(self):
        assert status_matches(401, "401") is True
        assert status_matches(403, "401") is False


class TestCheckResponse:
    """Tests for response shape checks."""

    def test_equals(self):
        ok, _ = check_response({"a": 1}, ResponseCheck(path="a", op="equals", value=1))
        assert ok is True

    def test_missing_path(self):
        ok, message = check_response({}, ResponseCheck(path="a", op="exists"))
        assert ok is False
        assert "not present" in message

    def test_icontains(self):
        data = {"display_name": "Mercedes-Benz Niederlassung, Stuttgart"}
        ok, _ = check_response(data, ResponseCheck(path="display_name", op="icontains", value="stuttgart"))
        assert ok is True

    def test_any_contains(self):
        data = [{"display_name": "Autohaus Berlin"}, {"display_name": "Mercedes-Benz Center"}]
        check = ResponseCheck(path="*.display_name", op="any_contains", value=["Mercedes", "Benz"])
        ok, message = check_response(data, check)
        assert ok is True
        assert "1 of 2" in message

    def test_min_length_and_greater_than(self):
        assert check_response([1, 2], ResponseCheck(path="$", op="min_length", value=1))[0] is True
        assert check_response([], ResponseCheck(path="$", op="min_length", value=1))[0] is False
        assert check_response({"id": 5}, ResponseCheck(path="id", op="greater_than", value=0))[0] is True
        assert check_response({"id": "x"}, ResponseCheck(path="id", op="greater_than", value=0))[0] is False

    def test_contains_coerces_value_for_strings(self):
        assert check_response({"zip": "70372"}, ResponseCheck(path="zip", op="contains", value=70372))[0] is True
        assert check_response({"zip": "70372"}, ResponseCheck(path="zip", op="contains", value=42))[0] is False
        assert check_response({"ids": [1, 2]}, ResponseCheck(path="ids", op="contains", value=2))[0] is True
        assert check_response({"id": 7}, ResponseCheck(path="id", op="contains", value=7))[0] is False

    @pytest.mark.parametrize("value", [None, "abc", [1]])
    def test_min_length_needs_integer(self, value):
        with pytest.raises(ConfigurationError, match="min_length"):
            check_response([1, 2], ResponseCheck(path="$", op="min_length", value=value))

    def test_min_length_accepts_numeric_string(self):
        assert check_response([1, 2], ResponseCheck(path="$", op="min_length", value="2"))[0] is True

    def test_unknown_op(self):
        with pytest.raises(ConfigurationError):
            check_response({"a": 1}, ResponseCheck(path="a", op="matches", value="x"))


class TestWorkflowStepModel:
    """Tests for step validation."""

    def test_method_uppercased(self):
        assert WorkflowStep(name="x", method="post", endpoint="/").method == "POST"

    def test_bad_expect_rejected(self):
        with pytest.raises(ValueError):
            WorkflowStep(name="x", endpoint="/", expect="success")


@pytest.mark.asyncio
class TestWorkflowSequencer:
    """Tests for WorkflowSequencer.run against an in-memory service."""

    async def test_create_read_cleanup(self, user_service):
        sequencer = WorkflowSequencer(user_service, credentials={"gorest": "secret"})
        result = await sequencer.run(_account_workflow())

        assert result.state == "completed"
        assert result.passed is True
        assert str(result.variables["user_id"]) == "42"
        assert result.resources[0].resource_id == "42"
        assert result.resources[0].deleted is True
        assert result.resources[0].verified is True
        assert result.leaks == []
        assert user_service.users == {}
        assert ("DELETE", "/users/42") in user_service.calls

        response = await user_service.fetch(f"{BASE}/users/42")
        assert response.status == 404

    async def test_step_results_recorded_in_order(self, user_service):
        sequencer = WorkflowSequencer(user_service, credentials={"gorest": "secret"})
        result = await sequencer.run(_account_workflow())

        phases = [(s.phase, s.method) for s in result.step_results]
        assert phases == [("step", "POST"), ("step", "GET"), ("cleanup", "DELETE")]
        assert all(s.passed for s in result.step_results)
        assert result.step_results[0].status == 201

    async def test_cleanup_runs_after_failed_assertion(self, user_service):
        workflow = _account_workflow(read_check=ResponseCheck(path="name", op="equals", value="Nobody"))
        sequencer = WorkflowSequencer(user_service, credentials={"gorest": "secret"})
        result = await sequencer.run(workflow)

        assert result.state == "failed"
        assert result.failed_step == 1
        assert result.error_kind == "assertion"
        assert result.resources[0].deleted is True
        assert result.leaks == []
        assert user_service.users == {}

    async def test_negative_path_expected_401(self, user_service):
        workflow = Workflow(
            name="Unauthenticated registration",
            base_url=BASE,
            steps=[WorkflowStep(name="Register without token", method="POST",
                                endpoint="/users", body={"name": "x"}, expect="401")],
        )
        result = await WorkflowSequencer(user_service).run(workflow)

        assert result.state == "completed"
        assert result.step_results[0].status == 401
        assert user_service.users == {}

    async def test_status_class_4xx(self, user_service):
        workflow = Workflow(
            name="Unauthenticated registration",
            base_url=BASE,
            steps=[WorkflowStep(name="Register", method="POST", endpoint="/users", expect="4xx")],
        )
        result = await WorkflowSequencer(user_service).run(workflow)
        assert result.state == "completed"

    async def test_unexpected_status_is_assertion_failure(self, user_service):
        workflow = Workflow(
            name="Register",
            base_url=BASE,
            steps=[WorkflowStep(name="Register", method="POST", endpoint="/users", expect="2xx")],
        )
        result = await WorkflowSequencer(user_service).run(workflow)

        assert result.state == "failed"
        assert result.failed_step == 0
        assert result.error_kind == "assertion"
        assert "expected status 2xx, got 401" in result.error_message

    async def test_idempotent_across_runs(self, user_service):
        sequencer = WorkflowSequencer(user_service, credentials={"gorest": "secret"})
        first = await sequencer.run(_account_workflow())
        second = await sequencer.run(_account_workflow())

        assert first.passed and second.passed
        assert user_service.created == 2
        assert user_service.deleted == 2
        assert user_service.users == {}

    async def test_missing_cleanup_step_is_a_leak(self, user_service):
        sequencer = WorkflowSequencer(user_service, credentials={"gorest": "secret"})
        result = await sequencer.run(_account_workflow(cleanup=False))

        assert result.state == "completed"
        assert result.passed is False
        assert result.leaks == ["user id=42 was not deleted"]

    async def test_failed_delete_is_a_leak(self, user_service):
        user_service.delete_status = 500
        sequencer = WorkflowSequencer(user_service, credentials={"gorest": "secret"})
        result = await sequencer.run(_account_workflow())

        assert result.state == "completed"
        assert result.leaks == ["user id=42 was not deleted"]
        assert result.step_results[-1].phase == "cleanup"
        assert result.step_results[-1].passed is False

    async def test_unverified_delete_is_a_leak(self, user_service):
        user_service.keep_on_delete = True
        sequencer = WorkflowSequencer(user_service, credentials={"gorest": "secret"})
        result = await sequencer.run(_account_workflow())

        assert result.resources[0].deleted is True
        assert result.resources[0].verified is False
        assert result.leaks == ["user id=42 deletion could not be verified"]

    async def test_in_step_delete_releases_resource(self, user_service):
        workflow = Workflow(
            name="Create and delete",
            base_url=BASE,
            steps=[_register_step(), _delete_user_step()],
            cleanup=[_delete_user_step()],
        )
        sequencer = WorkflowSequencer(user_service, credentials={"gorest": "secret"})
        result = await sequencer.run(workflow)

        assert result.passed is True
        assert user_service.deleted == 1
        assert [s.phase for s in result.step_results] == ["step", "step"]

    async def test_transport_failure_is_remote_error(self, user_service):
        class Unreachable(FakeUserService):
            async def fetch(self, url, **kwargs):
                raise PlaywrightError("getaddrinfo ENOTFOUND api.test")

        result = await WorkflowSequencer(Unreachable()).run(Workflow(
            name="Lookup", base_url=BASE, steps=[WorkflowStep(name="Get", endpoint="/users/1")],
        ))

        assert result.state == "failed"
        assert result.error_kind == "remote"
        assert "ENOTFOUND" in result.error_message

    async def test_timeout_still_cleans_up(self, user_service):
        user_service.hang_once = ("GET", "/users/42")
        workflow = _account_workflow()
        workflow.timeout_seconds = 0.2
        sequencer = WorkflowSequencer(user_service, credentials={"gorest": "secret"})

        result = await sequencer.run(workflow)

        assert result.state == "failed"
        assert result.error_kind == "timeout"
        assert result.failed_step == 1
        assert result.leaks == []
        assert user_service.users == {}

    async def test_create_aborted_by_timeout_is_a_leak(self, user_service, caplog):
        user_service.hang_once = ("POST", "/users")
        workflow = _account_workflow()
        workflow.timeout_seconds = 0.2
        sequencer = WorkflowSequencer(user_service, credentials={"gorest": "secret"})

        with caplog.at_level("ERROR"):
            result = await sequencer.run(workflow)

        assert result.error_kind == "timeout"
        assert result.failed_step == 0
        assert result.resources == []
        assert result.leaks == ["user possibly created by step 0 (aborted in flight)"]
        assert "aborted in flight" in caplog.text

    async def test_unexpected_error_still_cleans_up(self):
        class Flaky(FakeUserService):
            failed = False

            async def fetch(self, url, method="GET", **kwargs):
                if method == "GET" and not self.failed and url.endswith("/users/42"):
                    self.failed = True
                    raise RuntimeError("connection pool exhausted")
                return await super().fetch(url, method=method, **kwargs)

        service = Flaky()
        result = await WorkflowSequencer(service, credentials={"gorest": "secret"}).run(_account_workflow())

        assert result.state == "failed"
        assert result.error_kind == "error"
        assert result.failed_step == 1
        assert "RuntimeError: connection pool exhausted" in result.error_message
        assert result.resources[0].deleted is True
        assert result.leaks == []
        assert service.users == {}

    async def test_missing_credential(self, user_service):
        result = await WorkflowSequencer(user_service, credentials={}).run(_account_workflow())

        assert result.state == "failed"
        assert result.error_kind == "configuration"
        assert "gorest" in result.error_message
        assert user_service.calls == []

    async def test_non_json_body(self):
        class Plain(FakeUserService):
            async def fetch(self, url, **kwargs):
                return FakeResponse(200, None)

        workflow = Workflow(name="Plain", base_url=BASE, steps=[
            WorkflowStep(name="Get", endpoint="/x", checks=[ResponseCheck(path="id")]),
        ])
        result = await WorkflowSequencer(Plain()).run(workflow)

        assert result.error_kind == "assertion"
        assert "not JSON" in result.error_message

    async def test_bind_carries_value_to_next_step(self, user_service):
        workflow = Workflow(
            name="Bind",
            base_url=BASE,
            steps=[
                _register_step(bind={"created_name": "name"}),
                WorkflowStep(
                    name="Read back",
                    endpoint="/users/{{user_id}}",
                    checks=[ResponseCheck(path="name", op="equals", value="{{created_name}}")],
                ),
            ],
            cleanup=[_delete_user_step()],
        )
        sequencer = WorkflowSequencer(user_service, credentials={"gorest": "secret"})
        result = await sequencer.run(workflow)

        assert result.passed is True
        assert result.variables["created_name"].startswith("Test ")
        assert result.step_results[1].url == f"{BASE}/users/42"
