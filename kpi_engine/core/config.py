"""Application settings and configuration."""

from decimal import Decimal

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator
from typing import Any, Dict, Optional, List


class Settings(BaseSettings):
    """Application settings with environment variable loading."""

    # API settings
    PROJECT_NAME: str = "KPI Assessment Engine"
    VERSION: str = "1.0.0"
    DEBUG: bool = False
    API_V1_STR: str = "/api/v1"

    # CORS
    CORS_ORIGINS: str = "*"
    CORS_HEADERS: str = "*"
    CORS_METHODS: str = "*"

    # Database
    POSTGRES_SERVER: str = "localhost"
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = ""
    POSTGRES_DB: str = "kpi_engine"
    POSTGRES_PORT: str = "5432"
    DATABASE_URI: Optional[str] = Field(default=None, validate_default=True)
    SQL_ECHO: bool = False

    # Database connection pool settings
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20

    # Logging
    LOG_DIRECTORY: str = "logs"
    LOG_MAX_BYTES: int = 10 * 1024 * 1024  # 10MB
    LOG_BACKUP_COUNT: int = 5
    SERVICE_NAME: str = "kpi-engine"

    # Scoring defaults for KPI definitions that don't set their own bounds
    DEFAULT_SCORE_CAP: int = 120
    DEFAULT_SCORE_FLOOR: int = 0

    # Approval workflow, comma separated and in order. COMPLETED is implicit.
    APPROVAL_STAGES: str = "SELF_EVAL,MANAGER_REVIEW,SKIP_LEVEL,HR_CONFIRM"
    # stage=role pairs, e.g. "SELF_EVAL=EMPLOYEE,MANAGER_REVIEW=MANAGER"
    STAGE_ROLES: str = (
        "SELF_EVAL=EMPLOYEE,MANAGER_REVIEW=MANAGER,"
        "SKIP_LEVEL=SKIP_LEVEL_MANAGER,HR_CONFIRM=HR"
    )

    # Static user roles for StaticRoleResolver when ROLE_SERVICE_URL is unset,
    # e.g. "u-1=EMPLOYEE|MANAGER,u-2=HR"
    STATIC_USER_ROLES: str = ""

    # Department-level total for submissions covering several employees
    DEPARTMENT_ROLLUP_METHOD: str = "AVERAGE"
    # Membership for LEADER_SCORE / WEIGHTED_AVERAGE,
    # e.g. "dept-1=emp-a,dept-2=emp-x" and "emp-a=2,emp-b=1"
    DEPARTMENT_LEADERS: str = ""
    DEPARTMENT_MEMBER_WEIGHTS: str = ""

    # Outbound collaborators
    ROLE_SERVICE_URL: Optional[str] = None
    NOTIFICATION_WEBHOOK_URL: Optional[str] = None
    HTTP_TIMEOUT_SECONDS: float = 5.0

    @field_validator("DATABASE_URI", mode="before")
    def assemble_db_connection(cls, v: Optional[str], info: Dict[str, Any]) -> Any:
        """Build PostgreSQL connection string from components."""
        if isinstance(v, str):
            return v

        values = info.data
        user = values.get("POSTGRES_USER", "")
        password = values.get("POSTGRES_PASSWORD", "")
        host = values.get("POSTGRES_SERVER", "")
        port = values.get("POSTGRES_PORT", "5432")
        db = values.get("POSTGRES_DB", "")

        auth = f"{user}:{password}" if password else user
        return f"postgresql+asyncpg://{auth}@{host}:{port}/{db}"

    @field_validator("API_V1_STR")
    def ensure_api_prefix_has_slash(cls, v: str) -> str:
        """Ensure API prefix starts with a slash."""
        if not v.startswith("/"):
            return f"/{v}"
        return v

    @property
    def CORS_ORIGINS_LIST(self) -> List[str]:
        """Convert CORS_ORIGINS string to list."""
        if self.CORS_ORIGINS == "*":
            return ["*"]
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",")]

    @property
    def CORS_METHODS_LIST(self) -> List[str]:
        """Convert CORS_METHODS string to list."""
        if self.CORS_METHODS == "*":
            return ["*"]
        return [method.strip() for method in self.CORS_METHODS.split(",")]

    @property
    def CORS_HEADERS_LIST(self) -> List[str]:
        """Convert CORS_HEADERS string to list."""
        if self.CORS_HEADERS == "*":
            return ["*"]
        return [header.strip() for header in self.CORS_HEADERS.split(",")]

    @property
    def APPROVAL_STAGES_LIST(self) -> List[str]:
        """Convert APPROVAL_STAGES string to ordered list."""
        return [stage.strip().upper() for stage in self.APPROVAL_STAGES.split(",") if stage.strip()]

    @property
    def STAGE_ROLES_MAP(self) -> Dict[str, str]:
        """Convert STAGE_ROLES string to a stage -> role mapping."""
        mapping = {}
        for pair in self.STAGE_ROLES.split(","):
            if "=" not in pair:
                continue
            stage, role = pair.split("=", 1)
            mapping[stage.strip().upper()] = role.strip().upper()
        return mapping

    @property
    def STATIC_USER_ROLES_MAP(self) -> Dict[str, List[str]]:
        """Convert STATIC_USER_ROLES string to a user -> roles mapping."""
        mapping: Dict[str, List[str]] = {}
        for pair in self.STATIC_USER_ROLES.split(","):
            if "=" not in pair:
                continue
            user_id, roles = pair.split("=", 1)
            mapping[user_id.strip()] = [r.strip().upper() for r in roles.split("|") if r.strip()]
        return mapping

    @property
    def DEPARTMENT_LEADERS_MAP(self) -> Dict[str, str]:
        """Convert DEPARTMENT_LEADERS string to a department -> leader mapping."""
        mapping = {}
        for pair in self.DEPARTMENT_LEADERS.split(","):
            if "=" not in pair:
                continue
            department_id, employee_id = pair.split("=", 1)
            mapping[department_id.strip()] = employee_id.strip()
        return mapping

    @property
    def DEPARTMENT_MEMBER_WEIGHTS_MAP(self) -> Dict[str, Decimal]:
        """Convert DEPARTMENT_MEMBER_WEIGHTS string to an employee -> weight mapping."""
        mapping = {}
        for pair in self.DEPARTMENT_MEMBER_WEIGHTS.split(","):
            if "=" not in pair:
                continue
            employee_id, weight = pair.split("=", 1)
            mapping[employee_id.strip()] = Decimal(weight.strip())
        return mapping

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )


# Create global settings instance
settings = Settings()
