"""Directory API endpoint paths.

Centralised so the client, tests and form entry reporter agree on paths.
Paths are relative to the configured base URL (which already includes the
``/api`` prefix).
"""


class DirectoryEndpoints:
    """Endpoint path templates for the Directory API."""

    # Provisioning transactions
    CHECKPOINT = "provisioning/directory/checkpoint"
    COMMIT = "provisioning/directory/commit"
    TRANSACTIONS = "provisioning/directory/transactions"
    TRANSACTION_STATUS = "provisioning/directory/transaction/{transaction_id}/status"

    # Directory entities
    DEPARTMENTS = "provisioning/directory/department"
    USERS = "provisioning/directory/user"
    TRANSACTION_USERS = "provisioning/directory/{transaction_id}/user"

    # Background jobs
    JOB = "job/{job_id}"

    # Case management / reporting
    EXPRESSION_EXECUTE = "expression/execute"
    FORM_VERSIONS = "form/versions"
    CATEGORY_VERSIONS = "categoryversions/ids"
    CATEGORY_GROUPS = "categorygroups/ids"
    FORM_TYPES = "formtype"
    WORKFLOWS = "workflow/ids"
    DEPARTMENTS_BY_ID = "department/ids"
    RISK_MODEL_VERSIONS = "riskmodel/version/ids"
    PRIORITIES = "priority"

    @classmethod
    def transaction_status(cls, transaction_id: str) -> str:
        return cls.TRANSACTION_STATUS.format(transaction_id=transaction_id)

    @classmethod
    def transaction_users(cls, transaction_id: str) -> str:
        return cls.TRANSACTION_USERS.format(transaction_id=transaction_id)

    @classmethod
    def job(cls, job_id: str | int) -> str:
        return cls.JOB.format(job_id=job_id)
