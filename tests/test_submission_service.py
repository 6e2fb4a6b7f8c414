"""
Submission ingestion tests.

Tests cover:
  - Missing / soft-deleted forms
  - Initiator role restriction (case-insensitive, admin override)
  - Answer validation: shape, integer ids, questions belonging to the form
"""
import pytest

from app.core.exceptions import AuthorizationError, NotFoundError, ValidationError
from app.models import db
from app.models.approval import FormResponse
from app.services.submission_service import submit_form


def _answers(form):
    return [{"question_id": q.id, "answer_text": "yes"} for q in form.questions.all()]


class TestFormChecks:
    def test_missing_form(self, org):
        with pytest.raises(NotFoundError):
            submit_form(9999, org.student_cs, [{"question_id": 1, "answer_text": "x"}])

    def test_deleted_form(self, org, make_form):
        form = make_form()
        answers = _answers(form)
        form.soft_delete()
        db.session.commit()
        with pytest.raises(NotFoundError):
            submit_form(form.id, org.student_cs, answers)


class TestInitiator:
    def test_open_form_accepts_anyone(self, org, make_form):
        form = make_form(initiator=None)
        assert submit_form(form.id, org.hod_cs, _answers(form)).response.id

    def test_matching_role(self, org, make_form):
        form = make_form(initiator="Student")
        assert submit_form(form.id, org.student_cs, _answers(form)).response.user_id == org.student_cs.id

    def test_other_role_refused(self, org, make_form):
        form = make_form(initiator="student")
        with pytest.raises(AuthorizationError):
            submit_form(form.id, org.hod_cs, _answers(form))
        assert FormResponse.query.count() == 0

    def test_admin_may_always_submit(self, org, make_form):
        form = make_form(initiator="student")
        assert submit_form(form.id, org.admin, _answers(form)).response.status == "approved"


class TestAnswerValidation:
    @pytest.mark.parametrize("answers", [None, [], "answers", {"question_id": 1}])
    def test_answers_must_be_non_empty_list(self, org, make_form, answers):
        form = make_form()
        with pytest.raises(ValidationError):
            submit_form(form.id, org.student_cs, answers)

    @pytest.mark.parametrize("bad", [{"question_id": "1"}, {"question_id": True}, {"answer_text": "x"}, "x"])
    def test_malformed_answer(self, org, make_form, bad):
        form = make_form()
        with pytest.raises(ValidationError) as exc:
            submit_form(form.id, org.student_cs, [bad])
        assert "answers[0]" in exc.value.details

    def test_question_from_another_form(self, org, make_form):
        form = make_form("A")
        other = make_form("B", questions=("Elsewhere",))
        with pytest.raises(ValidationError) as exc:
            submit_form(form.id, org.student_cs, _answers(other))
        assert exc.value.details["question_id"] == [other.questions.first().id]

    def test_deleted_question_rejected(self, org, make_form):
        form = make_form(questions=("Keep", "Gone"))
        gone = form.questions.filter_by(question_text="Gone").first()
        gone.soft_delete()
        db.session.commit()
        with pytest.raises(ValidationError):
            submit_form(form.id, org.student_cs, [{"question_id": gone.id, "answer_text": "x"}])

    def test_null_answer_text_allowed(self, org, make_form):
        form = make_form()
        qid = form.questions.first().id
        outcome = submit_form(form.id, org.student_cs, [{"question_id": qid, "answer_text": None}])
        assert outcome.response.details.first().answer_text is None

    def test_non_string_answer_is_stringified(self, org, make_form):
        form = make_form()
        qid = form.questions.first().id
        outcome = submit_form(form.id, org.student_cs, [{"question_id": qid, "answer_text": 42}])
        assert outcome.response.details.first().answer_text == "42"
