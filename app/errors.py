class ComplianceError(Exception):
    """Base class for errors raised by the assessment core."""


class AssessmentNotFoundError(ComplianceError):
    def __init__(self, assessment_id: int) -> None:
        super().__init__(f"Assessment {assessment_id} not found")
        self.assessment_id = assessment_id


class UnknownModuleError(ComplianceError):
    def __init__(self, module_key: str) -> None:
        super().__init__(f"Unknown module '{module_key}'")
        self.module_key = module_key


class ConnectionNotFoundError(ComplianceError):
    def __init__(self, assessment_id: int, connection_id: int) -> None:
        super().__init__(f"Connection {connection_id} not found for assessment {assessment_id}")
        self.assessment_id = assessment_id
        self.connection_id = connection_id
