"""Configuration for streamgate components."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class StreamgateConfig(BaseSettings):
    upstream_ws_base: str = "wss://generativelanguage.googleapis.com"
    upstream_http_base: str = "https://generativelanguage.googleapis.com"

    establish_timeout_seconds: float = 10.0
    upstream_open_timeout_seconds: float | None = 60.0
    api_timeout_seconds: float = 15.0
    max_pending_frames: int = 10

    socket_path_prefix: str = "/ws/"
    api_path_suffixes: tuple[str, ...] = ("/chat/completions", "/embeddings", "/models")
    api_proxy_module: str = "streamgate.api_proxy"

    static_dir: str | None = None
    static_cache_ttl_seconds: int = 3600
    static_cache_key_pattern: str = "streamgate:static:{path}"

    log_preview_chars: int = 200

    model_config = SettingsConfigDict(env_prefix="streamgate_")

    def target_url(self, path: str, query: str = "") -> str:
        """Upstream WebSocket URL for an inbound path and query, both kept verbatim."""
        if query:
            return f"{self.upstream_ws_base}{path}?{query}"
        return f"{self.upstream_ws_base}{path}"

    def forward_url(self, path: str, query: str = "") -> str:
        if query:
            return f"{self.upstream_http_base}{path}?{query}"
        return f"{self.upstream_http_base}{path}"

    def static_cache_key(self, path: str) -> str:
        return self.static_cache_key_pattern.format(path=path)
