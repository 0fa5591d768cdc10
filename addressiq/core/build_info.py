from dataclasses import dataclass

from addressiq.core.config import Settings


@dataclass(frozen=True)
class BuildInfo:
    backend_commit: str
    backend_date: str
    frontend_commit: str
    frontend_date: str

    @classmethod
    def from_settings(cls, settings: Settings) -> "BuildInfo":
        return cls(
            backend_commit=settings.commit_sha,
            backend_date=settings.build_date,
            frontend_commit=settings.frontend_commit_sha,
            frontend_date=settings.frontend_build_date,
        )

    def as_dict(self) -> dict[str, dict[str, str]]:
        return {
            "backend": {"commit": self.backend_commit, "date": self.backend_date},
            "frontend": {"commit": self.frontend_commit, "date": self.frontend_date},
        }
