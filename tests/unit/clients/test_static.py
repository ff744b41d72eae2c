"""Tests for actionengine/clients/static.py"""

import pytest

from actionengine import ARGS_DIR
from actionengine.clients.static import StaticRecommendationClient, plan_from_dict
from actionengine.errors import RecommendationError


class TestPlanFromDict:
    def test_service_payload_in_camel_case(self):
        plan = plan_from_dict(
            {
                "sessionId": "abc",
                "totalDuration": 45,
                "sequence": [
                    {"id": 7, "title": "Write intro", "duration": 20, "order": 1, "reason": "Fresh mind"},
                    {"id": 8, "title": "Edit", "duration_minutes": 25, "order": 2},
                ],
            }
        )

        assert plan.sequence_id == "abc"
        assert plan.total_duration == 45
        assert [t.id for t in plan.tasks] == ["7", "8"]
        assert plan.tasks[0].reason == "Fresh mind"
        assert plan.tasks[1].duration_minutes == 25

    def test_total_defaults_to_sum_of_tasks(self, sample_tasks):
        plan = plan_from_dict({"tasks": sample_tasks})
        assert plan.total_duration == 25
        assert plan.sequence_id.startswith("seq_")
        assert [t.order for t in plan.tasks] == [0, 1, 2]

    def test_task_without_id_is_rejected(self):
        with pytest.raises(RecommendationError):
            plan_from_dict({"tasks": [{"title": "No id"}]})

    def test_no_tasks(self):
        assert plan_from_dict({}).tasks == ()

    def test_task_that_is_not_a_mapping_is_rejected(self):
        with pytest.raises(RecommendationError):
            plan_from_dict({"sequence": ["t1", "t2"]})

    def test_fractional_total_duration_is_rejected(self, sample_tasks):
        with pytest.raises(RecommendationError):
            plan_from_dict({"tasks": sample_tasks, "totalDuration": "25.5"})

    def test_repeated_task_id_is_rejected(self):
        with pytest.raises(RecommendationError, match="more than once"):
            plan_from_dict({"tasks": [{"id": "a", "duration": 5}, {"id": "a", "duration": 5}]})


class TestStaticRecommendationClient:
    @pytest.mark.asyncio
    async def test_replays_plan_and_records_requests(self, recommender):
        plan = await recommender.get_flow_sequence(60, "low")

        assert [t.id for t in plan.tasks] == ["t1", "t2", "t3"]
        assert recommender.requests == [(60, "low")]

    def test_from_yaml(self, tmp_path):
        path = tmp_path / "plan.yaml"
        path.write_text(
            "sequence_id: morning\n"
            "tasks:\n"
            "  - id: a\n"
            "    title: Inbox zero\n"
            "    duration: 15\n"
        )

        client = StaticRecommendationClient.from_yaml(path)

        assert client.plan.sequence_id == "morning"
        assert client.plan.tasks[0].title == "Inbox zero"

    def test_from_missing_yaml(self, tmp_path):
        with pytest.raises(RecommendationError):
            StaticRecommendationClient.from_yaml(tmp_path / "missing.yaml")

    def test_demo_plan_loads(self):
        client = StaticRecommendationClient.from_yaml(ARGS_DIR / "demo_plan.yaml")
        assert len(client.plan.tasks) == 4
