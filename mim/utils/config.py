"""
Mim - Configuration
Loads settings from environment variables / .env file.
"""
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List

DEFAULT_CATEGORIES = ["architecture", "patterns", "dependencies", "workflows", "gotchas"]


@dataclass
class MimConfig:
    """All configuration for Mim."""
    # API
    anthropic_api_key: str = ""
    investigator_model: str = "claude-haiku-4-5-20251001"
    fix_model: str = "claude-haiku-4-5-20251001"
    max_tokens: int = 4096
    max_turns: int = 25                          # Tool-use round trips per delegate call
    # Knowledge store
    knowledge_dir: str = ".claude/knowledge"
    categories: List[str] = field(default_factory=lambda: list(DEFAULT_CATEGORIES))
    # Dispatch
    max_concurrent: int = 5                      # 1 + a delay = sequential mode
    inter_call_delay: float = 0.0                # Seconds between batches
    call_timeout: float = 300.0                  # Seconds per delegate call
    # Throttle
    recheck_window_hours: float = 24.0           # Same commit: re-verify daily
    throttle_window_hours: float = 1.0           # New commit: let bursts coalesce
    # Resolution
    auto_fix_inline: bool = True                 # False: queue auto-fixes as auto_apply reviews
    # Debug
    debug_mode: bool = False

    @classmethod
    def from_env(cls, env_path: str = ".env") -> "MimConfig":
        """Load configuration from environment variables."""
        # Try loading .env file if it exists
        env_file = Path(env_path)
        if env_file.exists():
            _load_dotenv(env_file)
        categories = os.getenv("MIM_CATEGORIES", "")
        return cls(
            anthropic_api_key=os.getenv("ANTHROPIC_API_KEY", ""),
            investigator_model=os.getenv("MIM_MODEL", cls.investigator_model),
            fix_model=os.getenv("MIM_FIX_MODEL", cls.fix_model),
            max_tokens=int(os.getenv("MIM_MAX_TOKENS", str(cls.max_tokens))),
            max_turns=int(os.getenv("MIM_MAX_TURNS", str(cls.max_turns))),
            knowledge_dir=os.getenv("MIM_KNOWLEDGE_DIR", cls.knowledge_dir),
            categories=[c.strip() for c in categories.split(",") if c.strip()] or list(DEFAULT_CATEGORIES),
            max_concurrent=int(os.getenv("MIM_MAX_CONCURRENT", str(cls.max_concurrent))),
            inter_call_delay=float(os.getenv("MIM_INTER_CALL_DELAY", str(cls.inter_call_delay))),
            call_timeout=float(os.getenv("MIM_CALL_TIMEOUT", str(cls.call_timeout))),
            recheck_window_hours=float(os.getenv("MIM_RECHECK_HOURS", str(cls.recheck_window_hours))),
            throttle_window_hours=float(os.getenv("MIM_THROTTLE_HOURS", str(cls.throttle_window_hours))),
            auto_fix_inline=os.getenv("MIM_AUTO_FIX_INLINE", "true").lower() == "true",
            debug_mode=os.getenv("MIM_DEBUG", "false").lower() == "true",
        )

    def validate(self) -> List[str]:
        """Return list of warnings (non-fatal). Empty if fully configured."""
        warnings = []
        if not self.anthropic_api_key:
            warnings.append("ANTHROPIC_API_KEY not set; no delegate available, passes cannot investigate")
        if self.max_concurrent < 1:
            warnings.append(f"MIM_MAX_CONCURRENT={self.max_concurrent} is below 1; using 1")
        if self.throttle_window_hours > self.recheck_window_hours:
            warnings.append("MIM_THROTTLE_HOURS exceeds MIM_RECHECK_HOURS; new commits will wait longer than unchanged ones")
        return warnings

    @property
    def has_api_key(self) -> bool:
        """Whether an Anthropic API key is configured."""
        return bool(self.anthropic_api_key)

    def paths(self, repo_root) -> "KnowledgePaths":
        return KnowledgePaths.for_repo(repo_root, self.knowledge_dir)


@dataclass(frozen=True)
class KnowledgePaths:
    """Every file Mim reads or writes inside one repository."""
    repo_root: Path
    base: Path

    @classmethod
    def for_repo(cls, repo_root, knowledge_dir: str = ".claude/knowledge") -> "KnowledgePaths":
        root = Path(repo_root).resolve()
        return cls(repo_root=root, base=root / knowledge_dir)

    @property
    def pending_dir(self) -> Path:
        return self.base / "pending-review"

    @property
    def manifest_file(self) -> Path:
        return self.base / ".manifest.json"

    @property
    def lock_file(self) -> Path:
        return self.base / ".analysis-lock"

    @property
    def log_file(self) -> Path:
        return self.base / "mim.log"


def _load_dotenv(path: Path):
    """Minimal .env loader. Existing environment variables win."""
    try:
        with open(path) as f:
            for line in f:
                line = line.strip()
                if not line or line.startswith("#") or "=" not in line:
                    continue
                key, _, value = line.partition("=")
                key = key.strip()
                value = value.strip().strip("'\"")
                if key and not os.environ.get(key):
                    os.environ[key] = value
    except OSError:
        pass
