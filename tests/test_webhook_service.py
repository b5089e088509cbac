"""Tests for pull request review orchestration."""

import asyncio

from api.services.webhook_service import (
    WebhookOrchestrator,
    is_reviewable_event,
    parse_pull_request_event,
    process_pull_request_event,
)
from common.review_models import ChangedFile
from conftest import (
    FakeAuth,
    FakeGenerator,
    FakeGitHub,
    FakeStore,
    good_review,
    make_agent,
    make_pr_payload,
)


def _orchestrator(store=None, github=None, auth=None, generator=None):
    return WebhookOrchestrator(
        store=store or FakeStore([make_agent()]),
        github=github or FakeGitHub([ChangedFile(filename="src/app.py", patch="@@ -1 +1 @@\n+x = 1")]),
        auth=auth or FakeAuth(),
        generator=generator or FakeGenerator(),
    )


class TestEventFilter:
    def test_opened_and_synchronize_accepted(self):
        assert is_reviewable_event("pull_request", {"action": "opened"}) is True
        assert is_reviewable_event("pull_request", {"action": "synchronize"}) is True

    def test_other_actions_and_events_ignored(self):
        assert is_reviewable_event("pull_request", {"action": "closed"}) is False
        assert is_reviewable_event("push", {"action": "opened"}) is False
        assert is_reviewable_event(None, {"action": "opened"}) is False
        assert is_reviewable_event("pull_request", ["opened"]) is False

    def test_malformed_payload_rejected(self):
        payload = make_pr_payload()
        del payload["installation"]
        assert parse_pull_request_event(payload) is None


class TestHandlePullRequest:
    def test_one_file_one_agent(self, pr_event):
        store = FakeStore([make_agent(name="Security Bot")])
        github = FakeGitHub([ChangedFile(filename="src/app.py", patch="+x = 1")])
        generator = FakeGenerator()
        auth = FakeAuth()

        summary = asyncio.run(_orchestrator(store, github, auth, generator).handle_pull_request(pr_event))

        assert auth.installation_ids == [555]
        assert len(generator.calls) == 1
        assert len(store.evaluations) == 1
        assert len(store.runs) == 1
        assert len(github.comments) == 1
        assert (summary.evaluated, summary.commented, summary.failed) == (1, 1, 0)

        comment = github.comments[0]
        assert (comment["owner"], comment["repo"], comment["pr_number"]) == ("acme", "widgets", 42)
        assert comment["token"] == "installation-token"
        assert comment["body"].startswith("**Reviewed by: Security Bot**")

        evaluation = store.evaluations[0]
        assert evaluation["file_path"] == "src/app.py"
        assert evaluation["evaluation_model"] == "fake/model"
        assert evaluation["correctness_score"] == 8
        run = next(iter(store.runs.values()))
        assert run["status"] == "success"
        assert run["head_sha"] == "abc1234def5678"

    def test_metadata_upserted(self, pr_event):
        store = FakeStore([make_agent()])
        asyncio.run(_orchestrator(store=store).handle_pull_request(pr_event))

        assert store.repositories[1001]["full_name"] == "acme/widgets"
        assert store.repositories[1001]["stars_count"] == 3
        assert store.pull_requests[(1001, 42)]["author"] == "octocat"
        assert store.transactions[0].calls[0][0] == "upsert_repository"
        assert store.transactions[0].calls[1][0] == "upsert_pull_request"

    def test_compiled_prompt_uses_file_and_context(self, pr_event):
        generator = FakeGenerator()
        asyncio.run(_orchestrator(generator=generator).handle_pull_request(pr_event))

        prompt, change = generator.calls[0]
        assert prompt.startswith("Review this py change in Repository: acme/widgets, PR: #42:")
        assert prompt.endswith("@@ -1 +1 @@\n+x = 1")
        assert change.filename == "src/app.py"

    def test_extensionless_file_gets_unknown_type(self, pr_event):
        generator = FakeGenerator()
        github = FakeGitHub([ChangedFile(filename="Makefile", patch="+all:")])
        asyncio.run(_orchestrator(github=github, generator=generator).handle_pull_request(pr_event))
        assert generator.calls[0][0].startswith("Review this unknown change")

    def test_file_without_patch_is_never_matched(self, pr_event):
        store = FakeStore([make_agent()])
        store.list_error = AssertionError("matching must not run for patchless files")
        github = FakeGitHub([ChangedFile(filename="logo.png", patch=None)])
        generator = FakeGenerator()

        summary = asyncio.run(_orchestrator(store, github, generator=generator).handle_pull_request(pr_event))

        assert summary.files_skipped == 1
        assert summary.files_processed == 0
        assert generator.calls == []
        assert store.evaluations == []
        assert github.comments == []

    def test_no_matching_agents_skips_file(self, pr_event):
        store = FakeStore([make_agent(file_type_filters=["ts"])])
        generator = FakeGenerator()
        github = FakeGitHub([ChangedFile(filename="src/app.py", patch="+x")])

        asyncio.run(_orchestrator(store, github, generator=generator).handle_pull_request(pr_event))

        assert generator.calls == []
        assert github.comments == []

    def test_llm_failure_isolated_per_agent(self, pr_event):
        def respond(prompt, change):
            if "FAIL" in prompt:
                raise RuntimeError("model overloaded")
            return good_review()

        failing = make_agent("bad", name="Bad")
        failing.prompt_html = "FAIL {code_chunk}"
        store = FakeStore([failing, make_agent("good", name="Good")])
        github = FakeGitHub([ChangedFile(filename="src/app.py", patch="+x")])

        summary = asyncio.run(
            _orchestrator(store, github, generator=FakeGenerator(respond)).handle_pull_request(pr_event)
        )

        assert summary.failed == 1
        assert [e["agent_id"] for e in store.evaluations] == ["good"]
        assert len(github.comments) == 1
        statuses = {key[2]: run["status"] for key, run in store.runs.items()}
        assert statuses == {"bad": "failed", "good": "success"}
        assert store.runs[(1001, 42, "bad", "abc1234def5678")]["error_message"] == "model overloaded"

    def test_empty_llm_output_skips_agent(self, pr_event):
        store = FakeStore([make_agent()])
        github = FakeGitHub([ChangedFile(filename="src/app.py", patch="+x")])

        asyncio.run(
            _orchestrator(store, github, generator=FakeGenerator(lambda p, c: None)).handle_pull_request(pr_event)
        )

        assert store.evaluations == []
        assert store.runs == {}
        assert github.comments == []

    def test_loose_output_is_normalized_before_use(self, pr_event):
        store = FakeStore([make_agent()])
        github = FakeGitHub([ChangedFile(filename="src/app.py", patch="+x")])
        generator = FakeGenerator(lambda p, c: {"correctness": 42, "summary": "ok"})

        asyncio.run(_orchestrator(store, github, generator=generator).handle_pull_request(pr_event))

        assert store.evaluations[0]["correctness_score"] == 10
        assert store.evaluations[0]["security_score"] == 0
        assert store.evaluations[0]["overall_summary"] == "ok"

    def test_second_file_keeps_evaluation_when_run_exists(self, pr_event):
        store = FakeStore([make_agent()])
        github = FakeGitHub([
            ChangedFile(filename="src/a.py", patch="+a"),
            ChangedFile(filename="src/b.py", patch="+b"),
        ])

        summary = asyncio.run(_orchestrator(store, github).handle_pull_request(pr_event))

        assert [e["file_path"] for e in store.evaluations] == ["src/a.py", "src/b.py"]
        assert len(store.runs) == 1
        assert len(github.comments) == 2
        assert summary.evaluated == 2

    def test_success_on_later_file_wins_over_earlier_failure(self, pr_event):
        def respond(prompt, change):
            if change.filename == "src/a.py":
                raise RuntimeError("model overloaded")
            return good_review()

        store = FakeStore([make_agent()])
        github = FakeGitHub([
            ChangedFile(filename="src/a.py", patch="+a"),
            ChangedFile(filename="src/b.py", patch="+b"),
        ])

        summary = asyncio.run(
            _orchestrator(store, github, generator=FakeGenerator(respond)).handle_pull_request(pr_event)
        )

        assert (summary.evaluated, summary.failed) == (1, 1)
        assert [e["file_path"] for e in store.evaluations] == ["src/b.py"]
        assert [run["status"] for run in store.runs.values()] == ["success"]

    def test_failure_on_every_file_records_one_failed_run(self, pr_event):
        def respond(prompt, change):
            raise RuntimeError(f"timeout on {change.filename}")

        store = FakeStore([make_agent()])
        github = FakeGitHub([
            ChangedFile(filename="src/a.py", patch="+a"),
            ChangedFile(filename="src/b.py", patch="+b"),
        ])

        asyncio.run(
            _orchestrator(store, github, generator=FakeGenerator(respond)).handle_pull_request(pr_event)
        )

        assert store.evaluations == []
        assert list(store.runs.values())[0]["status"] == "failed"
        assert list(store.runs.values())[0]["error_message"] == "timeout on src/a.py"
        assert len(store.runs) == 1

    def test_persistence_failure_still_posts_comment(self, pr_event):
        store = FakeStore([make_agent()])
        store.fail_on = {"insert_evaluation"}
        github = FakeGitHub([ChangedFile(filename="src/app.py", patch="+x")])

        summary = asyncio.run(_orchestrator(store, github).handle_pull_request(pr_event))

        assert store.evaluations == []
        assert len(github.comments) == 1
        assert summary.failed == 1

    def test_metadata_failure_does_not_stop_review(self, pr_event):
        store = FakeStore([make_agent()])
        store.fail_on = {"upsert_repository"}
        github = FakeGitHub([ChangedFile(filename="src/app.py", patch="+x")])

        asyncio.run(_orchestrator(store, github).handle_pull_request(pr_event))

        assert store.repositories == {}
        assert store.pull_requests == {}
        assert len(store.evaluations) == 1

    def test_comment_failure_is_contained(self, pr_event):
        store = FakeStore([make_agent("a"), make_agent("b")])
        github = FakeGitHub([ChangedFile(filename="src/app.py", patch="+x")])
        github.post_error = RuntimeError("403 Resource not accessible")

        summary = asyncio.run(_orchestrator(store, github).handle_pull_request(pr_event))

        assert len(store.evaluations) == 2
        assert summary.commented == 0


class TestProcessPullRequestEvent:
    def test_auth_failure_is_logged_not_raised(self, pr_event, caplog):
        github = FakeGitHub([ChangedFile(filename="src/app.py", patch="+x")])
        generator = FakeGenerator()
        orchestrator = _orchestrator(
            github=github, auth=FakeAuth(error=RuntimeError("401 Bad credentials")), generator=generator
        )

        result = asyncio.run(process_pull_request_event(orchestrator, pr_event))

        assert result is None
        assert generator.calls == []
        assert "aborted" in caplog.text

    def test_file_listing_failure_aborts(self, pr_event):
        store = FakeStore([make_agent()])
        github = FakeGitHub(fetch_error=RuntimeError("404"))
        result = asyncio.run(process_pull_request_event(_orchestrator(store, github), pr_event))

        assert result is None
        assert store.transactions == []

    def test_store_outage_during_matching_aborts(self, pr_event):
        store = FakeStore([make_agent()])
        store.list_error = ConnectionError("neo4j down")
        generator = FakeGenerator()

        result = asyncio.run(
            process_pull_request_event(_orchestrator(store, generator=generator), pr_event)
        )

        assert result is None
        assert generator.calls == []
