from __future__ import annotations

import tempfile
import unittest
from pathlib import Path
from unittest import mock

from sqlalchemy.exc import OperationalError

import app.db as app_db
from app.errors import AssessmentNotFoundError, ConnectionNotFoundError, UnknownModuleError
from app.models import Assessment
from app.services.answer_store import AnswerStore
from app.services.assessment_service import (
    add_or_update_connection,
    create_assessment,
    get_module_result,
    remove_connection,
    update_module_answers,
)


def _init_test_db(db_path: Path) -> None:
    app_db.configure_database(f"sqlite:///{db_path.as_posix()}")
    assert app_db.engine is not None
    app_db.Base.metadata.drop_all(bind=app_db.engine)
    app_db.Base.metadata.create_all(bind=app_db.engine)
    app_db.ensure_runtime_schema()


class AssessmentServiceTests(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory(prefix="hls-service-")
        _init_test_db(Path(self._tmp.name) / "service.db")
        self.db = app_db.SessionLocal()
        self.assessment = create_assessment(self.db, organisation="General Hospital", supplier="Acme Health")

    def tearDown(self):
        self.db.close()
        assert app_db.engine is not None
        app_db.engine.dispose()
        self._tmp.cleanup()

    def test_new_assessment_is_unknown_everywhere(self):
        dpia = get_module_result(self.db, self.assessment.id, "dpia")
        self.assertEqual(dpia["verdict"], "Unknown")
        self.assertIsNone(dpia["dpia_required"])
        overall = get_module_result(self.db, self.assessment.id, "overall")
        self.assertIsNone(overall["risk_score"])
        self.assertEqual(overall["general_info"]["supplier"], "Acme Health")
        self.db.refresh(self.assessment)
        self.assertIsNone(self.assessment.overall_risk_label)
        self.assertEqual(self.assessment.supplier, "Acme Health")

    def test_lenient_upsert_ignores_unknown_and_derived_codes(self):
        update_module_answers(self.db, self.assessment.id, "dpia", [("Q1", "yes"), ("Q99", "yes")])
        update_module_answers(self.db, self.assessment.id, "security_profile", [("Q1", "no"), ("Q2", "yes")])
        store = AnswerStore(self.db)
        self.assertEqual(store.get_all(self.assessment.id, "dpia"), {"Q1": "yes"})
        self.assertEqual(store.get_all(self.assessment.id, "security_profile"), {"Q2": "yes"})
        security = get_module_result(self.db, self.assessment.id, "security_profile")
        q1 = next(q for q in security["questions"] if q["code"] == "Q1")
        self.assertEqual(q1["answer"], "yes")

    def test_blank_value_clears_answer(self):
        update_module_answers(self.db, self.assessment.id, "dpia", [("Q1", "yes")])
        update_module_answers(self.db, self.assessment.id, "dpia", [("Q1", "  ")])
        result = get_module_result(self.db, self.assessment.id, "dpia")
        q1 = next(q for q in result["questions"] if q["code"] == "Q1")
        self.assertEqual(q1["answer"], "unknown")

    def test_mdr_manual_answer_only_accepted_while_prefill_empty(self):
        result = update_module_answers(self.db, self.assessment.id, "mdr", [("A", "yes"), ("C", "no")])
        self.assertEqual(result["classification"], "Class I")
        update_module_answers(self.db, self.assessment.id, "dpia", [("Q2", "no")])
        result = update_module_answers(self.db, self.assessment.id, "mdr", [("A", "yes")])
        self.assertEqual(result["classification"], "Not a medical device")
        self.assertNotIn("A", result["editable_codes"])

    def test_reads_are_idempotent(self):
        update_module_answers(self.db, self.assessment.id, "dpia", [("Q1", "yes"), ("Q6", "yes")])
        first = get_module_result(self.db, self.assessment.id, "pre_assessment")
        stamp = self.db.get(Assessment, self.assessment.id).updated_at
        second = get_module_result(self.db, self.assessment.id, "pre_assessment")
        self.assertEqual(first, second)
        self.assertEqual(self.db.get(Assessment, self.assessment.id).updated_at, stamp)

    def test_cached_fields_follow_recompute(self):
        answers = [(f"Q{i}", "no") for i in range(1, 15)]
        update_module_answers(self.db, self.assessment.id, "dpia", answers)
        self.db.refresh(self.assessment)
        self.assertEqual(self.assessment.dpia_required, "no")
        self.assertEqual(self.assessment.mdr_class, "Not a medical device")
        self.assertEqual(self.assessment.ai_act_risk_level, "No AI system (outside AI Act)")
        self.assertEqual(self.assessment.connections_overall_risk, "None")
        self.assertEqual(self.assessment.overall_risk_label, "none")
        self.assertEqual(self.assessment.overall_risk_class, 0)

    def test_general_info_updates(self):
        result = update_module_answers(
            self.db,
            self.assessment.id,
            "overall",
            [("contract_status", "nieuw"), ("contract_date", "2025-01-15"), ("unknown", "x")],
        )
        self.assertEqual(result["general_info"]["contract_status"], "new")
        self.db.refresh(self.assessment)
        self.assertEqual(self.assessment.contract_status, "new")
        self.assertEqual(self.assessment.contract_date, "2025-01-15")

    def test_connections_lifecycle(self):
        ehr = add_or_update_connection(
            self.db, self.assessment.id, name="EHR", data_sensitivity="identifiable medical/personal"
        )
        self.assertEqual(ehr["overall_risk_level"], "High")
        result = add_or_update_connection(self.db, self.assessment.id, name="Planning", data_sensitivity="low")
        self.assertEqual(result["overall_risk_level"], "High")
        ehr_id = int(next(c["id"] for c in result["connections"] if c["name"] == "EHR"))
        result = remove_connection(self.db, self.assessment.id, ehr_id)
        self.assertEqual(result["overall_risk_level"], "Low")
        planning_id = int(result["connections"][0]["id"])
        result = add_or_update_connection(
            self.db,
            self.assessment.id,
            name="Planning",
            data_sensitivity="pseudonymous",
            connection_id=planning_id,
        )
        self.assertEqual(result["overall_risk_level"], "Medium")
        with self.assertRaises(ConnectionNotFoundError):
            remove_connection(self.db, self.assessment.id, ehr_id)

    def test_unknown_assessment_and_module(self):
        with self.assertRaises(AssessmentNotFoundError):
            get_module_result(self.db, 9999, "dpia")
        with self.assertRaises(UnknownModuleError):
            get_module_result(self.db, self.assessment.id, "gdpr")

    def test_transient_read_failure_is_treated_as_no_answers(self):
        update_module_answers(self.db, self.assessment.id, "dpia", [("Q1", "yes")])
        store = AnswerStore(self.db)
        failure = OperationalError("SELECT", {}, Exception("database is locked"))
        with mock.patch.object(self.db, "execute", side_effect=failure):
            with self.assertLogs("app.services.answer_store", level="WARNING"):
                self.assertEqual(store.get_all(self.assessment.id, "dpia"), {})

    def test_runtime_schema_keeps_unique_answer_index(self):
        app_db.ensure_runtime_schema()
        with app_db.engine.connect() as conn:
            indexes = {row[1] for row in conn.exec_driver_sql("PRAGMA index_list(assessment_answers)")}
            columns = {row[1] for row in conn.exec_driver_sql("PRAGMA table_info(assessments)")}
        self.assertIn("ux_assessment_answers_module_code", indexes)
        self.assertTrue({"renewal_date", "due_diligence_date", "assessment_version"} <= columns)

    def test_failed_answer_read_evaluates_like_a_fresh_assessment(self):
        update_module_answers(self.db, self.assessment.id, "dpia", [("Q1", "yes"), ("Q6", "yes")])
        update_module_answers(self.db, self.assessment.id, "pre_assessment", [("NIS2-b", "yes")])
        fresh = create_assessment(self.db, organisation="Other Hospital")

        real_execute = self.db.execute
        failure = OperationalError("SELECT", {}, Exception("database is locked"))

        def execute_failing_answer_reads(statement, *args, **kwargs):
            if "assessment_answers" in str(statement):
                raise failure
            return real_execute(statement, *args, **kwargs)

        for module_key in ("dpia", "pre_assessment"):
            expected = get_module_result(self.db, fresh.id, module_key)
            with mock.patch.object(self.db, "execute", side_effect=execute_failing_answer_reads):
                with self.assertLogs("app.services.answer_store", level="WARNING"):
                    result = get_module_result(self.db, self.assessment.id, module_key)
            expected.pop("assessment_id")
            result.pop("assessment_id")
            self.assertEqual(result, expected, module_key)


if __name__ == "__main__":
    unittest.main()
