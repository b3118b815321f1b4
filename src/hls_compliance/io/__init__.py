from .json_loader import AssessmentInput, dump_result_file, load_assessment_file

__all__ = ["AssessmentInput", "dump_result_file", "load_assessment_file"]
