"""Public entry point: an analyzer bound to a local or remote server."""

from __future__ import annotations

import io
import logging
import threading
from concurrent.futures import TimeoutError as FutureTimeoutError
from pathlib import Path
from typing import IO

import requests
from PIL import Image
from requests import Session

from .config import AnalyzerConfig
from .errors import ConfigurationError, ServerConnectionError
from .protocol import (
    ANALYZE_IMAGE_PATH,
    ANALYZE_RAW_IMAGE_PATH,
    STOP_PATH,
    decode_response,
    encode_request,
)
from .results import AnalysisRequest, AnalysisResult, ResultType
from .server.ports import find_free_port_pair
from .server.process import (
    ServerProcess,
    build_server_arguments,
    generate_stop_key,
    server_executable,
)
from .server.readiness import ping_once, wait_until_ready
from .utils.paths import default_distribution_path

logger = logging.getLogger(__name__)

_STOP_REQUEST_GRACE = 1.0


class Analyzer:
    """Submits images to an analysis server and decodes the results.

    Build instances with :meth:`create_local`, which spawns and owns a server
    process, or :meth:`create_remote`, which attaches to a running one. The
    HTTP session may be shared between analyzers; a session created here is
    closed by :meth:`stop`.
    """

    def __init__(
        self,
        base_url: str,
        *,
        api_key: str | None = None,
        stop_key: int | None = None,
        process: ServerProcess | None = None,
        session: Session | None = None,
        config: AnalyzerConfig | None = None,
    ) -> None:
        if (stop_key is None) != (process is None):
            raise ConfigurationError("A stop key is required exactly when a server process is owned.")
        self._config = config or AnalyzerConfig()
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key if api_key and api_key.strip() else None
        self._stop_key = stop_key
        self._process = process
        self._owns_session = session is None
        self._session = session if session is not None else requests.Session()
        self._stopped = False
        self.context_in_body = self._config.context_in_body

    # ----- Construction ----------------------------------------------------

    @classmethod
    def create_local(
        cls,
        distribution_path: Path | str | None,
        project_path: Path | str,
        api_key: str | None = None,
        options: str | None = None,
        *,
        config: AnalyzerConfig | None = None,
        session: Session | None = None,
    ) -> Analyzer:
        """Spawn a server from ``distribution_path`` and wait until it is ready.

        ``distribution_path`` may be None on Windows, where the installation
        directory is looked up under Program Files.
        """
        config = config or AnalyzerConfig()
        if distribution_path is None:
            distribution_path = default_distribution_path()
        if not str(distribution_path).strip():
            raise ConfigurationError("Distribution path must not be empty")
        if project_path is None or not str(project_path).strip():
            raise ConfigurationError("Project path must not be empty")

        host = config.host
        port = find_free_port_pair(config.port_range_start, config.port_range_end)
        stop_key = generate_stop_key()
        arguments = build_server_arguments(
            project_path,
            host,
            port,
            stop_key,
            api_key=api_key,
            options=options,
        )
        logger.info("Starting server for project %s on %s:%d", project_path, host, port)
        process = ServerProcess.spawn(server_executable(Path(distribution_path)), arguments)

        analyzer = cls(
            f"http://{host}:{port}",
            api_key=api_key,
            stop_key=stop_key,
            process=process,
            session=session,
            config=config,
        )
        try:
            wait_until_ready(
                analyzer._session,
                analyzer.base_url,
                process.exited,
                interval=config.ping_interval,
                timeout=config.startup_timeout,
                request_timeout=config.request_timeout,
            )
        except BaseException:
            process.terminate()
            analyzer._close_session()
            raise
        return analyzer

    @classmethod
    def create_remote(
        cls,
        host: str,
        port: int,
        api_key: str | None = None,
        *,
        config: AnalyzerConfig | None = None,
        session: Session | None = None,
        verify: bool = False,
    ) -> Analyzer:
        """Attach to a server that is already running.

        Reachability is only checked when ``verify`` is true, in which case a
        single failed ping raises immediately.
        """
        analyzer = cls(f"http://{host}:{port}", api_key=api_key, session=session, config=config)
        if verify:
            try:
                ping_once(analyzer._session, analyzer.base_url, timeout=analyzer._config.request_timeout)
            except BaseException:
                analyzer._close_session()
                raise
        return analyzer

    @classmethod
    def from_config(
        cls,
        config: AnalyzerConfig,
        *,
        session: Session | None = None,
        verify: bool = True,
    ) -> Analyzer:
        """Attach to the configured remote server, or spawn a local one."""
        if config.remote_host is not None and config.remote_port is not None:
            return cls.create_remote(
                config.remote_host,
                config.remote_port,
                config.api_key,
                config=config,
                session=session,
                verify=verify,
            )
        return cls.create_local(
            config.distribution_path,
            config.project_path,
            config.api_key,
            config.server_options,
            config=config,
            session=session,
        )

    # ----- Properties ------------------------------------------------------

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def is_local(self) -> bool:
        return self._process is not None

    @property
    def process(self) -> ServerProcess | None:
        return self._process

    # ----- Analysis --------------------------------------------------------

    def analyze(
        self,
        image_path: Path | str,
        result_type: ResultType | str = ResultType.CONTEXT,
        data: str | None = None,
    ) -> AnalysisResult:
        """Analyze an encoded image stored in a file."""
        with Path(image_path).open("rb") as handle:
            return self._analyze(ANALYZE_IMAGE_PATH, handle, result_type, data)

    def analyze_bytes(
        self,
        image_data: bytes,
        result_type: ResultType | str = ResultType.CONTEXT,
        data: str | None = None,
    ) -> AnalysisResult:
        """Analyze an encoded image (PNG, JPEG, ...) held in memory."""
        return self._analyze(ANALYZE_IMAGE_PATH, bytes(image_data), result_type, data)

    def analyze_raw(
        self,
        image_data: bytes,
        width: int,
        height: int,
        result_type: ResultType | str = ResultType.CONTEXT,
        data: str | None = None,
    ) -> AnalysisResult:
        """Analyze raw 3-channel pixels, ``width * height * 3`` bytes."""
        if width <= 0 or height <= 0:
            raise ValueError(f"Image dimensions must be positive, got {width}x{height}.")
        expected = width * height * 3
        if len(image_data) != expected:
            raise ValueError(
                f"Raw image of {width}x{height} needs {expected} bytes, got {len(image_data)}."
            )
        return self._analyze(
            ANALYZE_RAW_IMAGE_PATH,
            bytes(image_data),
            result_type,
            data,
            width=width,
            height=height,
        )

    def analyze_image(
        self,
        image: Image.Image,
        result_type: ResultType | str = ResultType.CONTEXT,
        data: str | None = None,
    ) -> AnalysisResult:
        """Analyze a Pillow image, sent losslessly as PNG."""
        buffer = io.BytesIO()
        image.save(buffer, format="PNG")
        return self.analyze_bytes(buffer.getvalue(), result_type, data)

    def _analyze(
        self,
        path: str,
        body: bytes | IO[bytes],
        result_type: ResultType | str,
        data: str | None,
        *,
        width: int = -1,
        height: int = -1,
    ) -> AnalysisResult:
        request = AnalysisRequest(
            path=path,
            body=body,
            result_type=ResultType.parse(result_type),
            data=data,
            width=width,
            height=height,
            context_in_body=self.context_in_body,
        )
        encoded = encode_request(self._base_url, request, api_key=self._api_key)
        logger.debug("POST %s", encoded.url)
        try:
            response = self._session.post(
                encoded.url,
                data=encoded.body,
                headers=encoded.headers,
                timeout=self._config.request_timeout,
            )
        except requests.RequestException as exc:
            raise ServerConnectionError(f"Analysis request to {self._base_url} failed: {exc}") from exc
        return decode_response(request.result_type, request.context_in_body, response)

    # ----- Shutdown --------------------------------------------------------

    def stop(self, timeout: float | None = None) -> None:
        """Ask an owned server to shut down and wait for the process to exit.

        The stop request is not awaited; completion is observed through the
        process exiting. When ``timeout`` (or ``stop_timeout`` from the
        configuration) elapses first, the process is terminated. Analyzers
        attached to a remote server own no process; for them this only
        releases the session. Calling it again does nothing.
        """
        if self._stopped:
            return
        self._stopped = True
        try:
            if self._process is not None:
                sender = self._request_stop()
                effective_timeout = timeout if timeout is not None else self._config.stop_timeout
                try:
                    self._process.wait(effective_timeout)
                except FutureTimeoutError:
                    logger.warning(
                        "Server at %s did not exit within %ss of the stop request",
                        self._base_url,
                        effective_timeout,
                    )
                    self._process.terminate()
                else:
                    # Let an already answered request finish before the session closes.
                    sender.join(_STOP_REQUEST_GRACE)
        finally:
            self._close_session()

    def _request_stop(self) -> threading.Thread:
        logger.info("Requesting shutdown of server at %s", self._base_url)
        sender = threading.Thread(
            target=self._send_stop,
            name=f"pekat-stop-{self._stop_key}",
            daemon=True,
        )
        sender.start()
        return sender

    def _send_stop(self) -> None:
        try:
            self._session.get(
                f"{self._base_url}{STOP_PATH}",
                params={"key": str(self._stop_key)},
                timeout=self._config.request_timeout,
            )
        except requests.RequestException as exc:
            # The server may drop the connection while it shuts down.
            logger.debug("Stop request to %s ended with: %s", self._base_url, exc)

    def _close_session(self) -> None:
        if self._owns_session:
            self._session.close()

    def __enter__(self) -> Analyzer:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()

    def __repr__(self) -> str:
        mode = "local" if self.is_local else "remote"
        return f"Analyzer({self._base_url!r}, mode={mode!r})"
