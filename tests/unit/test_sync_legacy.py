"""Unit tests for the additive (legacy) tag sync."""

import asyncio

import pytest

from app.sync.exceptions import ConfigurationError, RowCountError
from app.sync.models import PLACEHOLDER_TAG_DESCRIPTION, CourseInfo, QuestionInfo, Tag
from app.sync.tags import encode_tags, pair_tag_ids, sync, sync_with_callback


def _tag_ids_row(*ids: int) -> list[dict]:
    return [{"new_tag_ids": list(ids)}]


class TestEncoding:
    """Positional tag encoding and id pairing."""

    def test_tag_tuples_keep_names_aligned(self) -> None:
        tags = [Tag("b", "red1", "B"), Tag("a", "blue1", None), Tag("c", "gray1", "C")]

        param_tags = encode_tags(tags)

        assert param_tags == [("b", "red1", "B"), ("a", "blue1", None), ("c", "gray1", "C")]
        for i, tag in enumerate(tags):
            assert param_tags[i][0] == tag.name

    def test_ids_paired_by_position(self) -> None:
        param_tags = encode_tags([Tag("b", "red1"), Tag("a", "blue1")])

        tag_ids_by_name = pair_tag_ids(param_tags, [7, 3])

        assert dict(tag_ids_by_name) == {"b": 7, "a": 3}

    def test_id_map_is_read_only(self) -> None:
        tag_ids_by_name = pair_tag_ids(encode_tags([Tag("a", "red1")]), [1])

        with pytest.raises(TypeError):
            tag_ids_by_name["b"] = 2  # type: ignore[index]

    def test_id_count_mismatch(self) -> None:
        with pytest.raises(RowCountError):
            pair_tag_ids(encode_tags([Tag("a", "red1"), Tag("b", "red1")]), [1])


class TestSync:
    """sync"""

    def test_tags_then_question_tags(self, fake_db) -> None:
        fake_db.results["sync_course_tags"] = _tag_ids_row(10, 11)
        course_info = CourseInfo(course_id=5, tags=[Tag("x", "blue1", "d")])
        question_db = {
            "q1": QuestionInfo(tags=["x", "y"], id=100),
            "q2": QuestionInfo(tags=None, id=101),
        }

        asyncio.run(sync(fake_db, course_info, question_db))

        assert fake_db.procedure_names == ["sync_course_tags", "sync_question_tags"]

        tag_params = fake_db.params_for("sync_course_tags")
        assert tag_params[0].obj == [
            ("x", "blue1", "d"),
            ("y", "gray1", PLACEHOLDER_TAG_DESCRIPTION),
        ]
        assert tag_params[1] == 5

        (question_tags,) = fake_db.params_for("sync_question_tags")
        assert question_tags.obj == [(100, [10, 11]), (101, [])]

    def test_course_without_tags(self, fake_db) -> None:
        fake_db.results["sync_course_tags"] = _tag_ids_row(1)

        asyncio.run(sync(fake_db, CourseInfo(course_id=5), {"q1": QuestionInfo(tags=["t"], id=9)}))

        tag_params = fake_db.params_for("sync_course_tags")
        assert [param[0] for param in tag_params[0].obj] == ["t"]
        assert fake_db.params_for("sync_question_tags")[0].obj == [(9, [1])]

    def test_course_info_not_mutated(self, fake_db) -> None:
        fake_db.results["sync_course_tags"] = _tag_ids_row(1, 2)
        tags = [Tag("x", "blue1")]

        asyncio.run(sync(fake_db, CourseInfo(course_id=1, tags=tags), {"q1": QuestionInfo(tags=["y"], id=1)}))

        assert tags == [Tag("x", "blue1")]

    def test_duplicate_course_tags_fail_before_db(self, fake_db) -> None:
        course_info = CourseInfo(course_id=1, tags=[Tag("a", "red1"), Tag("a", "blue1")])

        with pytest.raises(ConfigurationError, match="a"):
            asyncio.run(sync(fake_db, course_info, {}))

        assert fake_db.calls == []

    def test_duplicate_question_tags_fail_before_db(self, fake_db) -> None:
        course_info = CourseInfo(course_id=1, tags=[Tag("x", "blue1")])

        with pytest.raises(ConfigurationError, match="Question q1 has duplicate tags: x"):
            asyncio.run(sync(fake_db, course_info, {"q1": QuestionInfo(tags=["x", "x"], id=1)}))

        assert fake_db.calls == []

    def test_id_count_mismatch_stops_before_question_tags(self, fake_db) -> None:
        fake_db.results["sync_course_tags"] = _tag_ids_row(1)
        course_info = CourseInfo(course_id=1, tags=[Tag("a", "red1"), Tag("b", "red1")])

        with pytest.raises(RowCountError):
            asyncio.run(sync(fake_db, course_info, {}))

        assert fake_db.procedure_names == ["sync_course_tags"]

    def test_database_errors_propagate(self, fake_db) -> None:
        error = RuntimeError("connection lost")
        fake_db.errors["sync_course_tags"] = error

        with pytest.raises(RuntimeError) as excinfo:
            asyncio.run(sync(fake_db, CourseInfo(course_id=1, tags=[Tag("a", "red1")]), {}))

        assert excinfo.value is error


class TestSyncWithCallback:
    """sync_with_callback"""

    def test_success_reports_none(self, fake_db) -> None:
        fake_db.results["sync_course_tags"] = _tag_ids_row()
        outcomes = []

        sync_with_callback(fake_db, CourseInfo(course_id=1), {}, outcomes.append)

        assert outcomes == [None]

    def test_failure_reports_error(self, fake_db) -> None:
        outcomes = []
        course_info = CourseInfo(course_id=1, tags=[Tag("a", "red1"), Tag("a", "red1")])

        sync_with_callback(fake_db, course_info, {}, outcomes.append)

        assert len(outcomes) == 1
        assert isinstance(outcomes[0], ConfigurationError)

    def test_inside_running_loop_reports_success(self, fake_db) -> None:
        fake_db.results["sync_course_tags"] = _tag_ids_row(11)
        course_info = CourseInfo(course_id=1, tags=[Tag("a", "red1")])
        outcomes = []

        async def caller() -> None:
            task = sync_with_callback(fake_db, course_info, {}, outcomes.append)
            assert task is not None
            await task

        asyncio.run(caller())

        assert outcomes == [None]
        assert fake_db.procedure_names == ["sync_course_tags", "sync_question_tags"]

    def test_inside_running_loop_reports_failure(self, fake_db) -> None:
        course_info = CourseInfo(course_id=1, tags=[Tag("a", "red1"), Tag("a", "red1")])
        outcomes = []

        async def caller() -> None:
            task = sync_with_callback(fake_db, course_info, {}, outcomes.append)
            assert task is not None
            await asyncio.gather(task, return_exceptions=True)

        asyncio.run(caller())

        assert len(outcomes) == 1
        assert isinstance(outcomes[0], ConfigurationError)
        assert fake_db.calls == []

    def test_without_loop_returns_nothing(self, fake_db) -> None:
        fake_db.results["sync_course_tags"] = _tag_ids_row()

        assert sync_with_callback(fake_db, CourseInfo(course_id=1), {}, lambda error: None) is None
