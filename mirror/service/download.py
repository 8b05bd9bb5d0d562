"""
Download service for external media.

Streams a URL into a temp file with a size ceiling, retrying transient
failures with exponential backoff. URLs resolving to non-public addresses
are refused before any request is made, and so is every redirect target.
"""

import ipaddress
import re
import socket
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional
from urllib.parse import unquote, urljoin, urlparse

import requests
from tenacity import RetryError, Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from mirror.errors import DownloadError, TransientError, ValidationError
from mirror.models import generate_nanoid
from mirror.service.config import (
    get_download_attempts,
    get_max_bytes_for_class,
    get_temp_dir,
    get_timeout_for_class,
)
from mirror.service.constants import CONTENT_CLASS_IMAGE

CHUNK_SIZE = 8192

MAX_REDIRECTS = 5
REDIRECT_STATUSES = (301, 302, 303, 307, 308)

USER_AGENT = 'mediasync/0.4'


@dataclass
class DownloadedFileInfo:
    """Information about a downloaded file"""

    path: Path
    file_size: int
    source_url: str
    filename: str
    raw_mime: Optional[str] = None


def clean_mime(content_type):
    """Strip parameters from a Content-Type header value"""
    if not content_type:
        return None
    return content_type.split(';')[0].strip().lower() or None


def filename_from_url(url):
    """
    Derive a safe local filename from the URL path.

    Returns:
        str: basename limited to [A-Za-z0-9._-], 'download' if nothing usable
    """
    name = unquote(Path(urlparse(url).path).name)
    name = re.sub(r'[^A-Za-z0-9._-]+', '-', name).strip('.-')
    return name[:120] or 'download'


def _is_blocked_address(ip):
    return (
        ip.is_private
        or ip.is_loopback
        or ip.is_link_local
        or ip.is_reserved
        or ip.is_multicast
        or ip.is_unspecified
    )


def validate_url_security(url):
    """
    Refuse URLs that would make us fetch from internal infrastructure.

    Only http/https URLs with a hostname are accepted, and every address the
    hostname resolves to must be public.

    Args:
        url: Source URL

    Raises:
        ValidationError: if the URL is malformed, unresolvable or non-public
    """
    try:
        parsed = urlparse(url)
    except ValueError as e:
        raise ValidationError(f'Malformed URL: {url}') from e

    if parsed.scheme.lower() not in ('http', 'https'):
        raise ValidationError(f'Unsupported URL scheme: {parsed.scheme or "(none)"}')

    host = parsed.hostname
    if not host:
        raise ValidationError(f'URL has no host: {url}')

    try:
        candidates = [ipaddress.ip_address(host)]
    except ValueError:
        try:
            port = parsed.port or (443 if parsed.scheme == 'https' else 80)
            infos = socket.getaddrinfo(host, port, proto=socket.IPPROTO_TCP)
        except (socket.gaierror, ValueError) as e:
            raise ValidationError(f'Unable to resolve host {host}: {e}') from e
        candidates = [ipaddress.ip_address(info[4][0].split('%')[0]) for info in infos]

    for ip in candidates:
        if _is_blocked_address(ip):
            raise ValidationError(f'Refusing to fetch {host}: resolves to non-public address {ip}')


def _peer_address(response):
    """Address the response was actually read from, None when unknown"""
    connection = getattr(response.raw, '_connection', None)
    sock = getattr(connection, 'sock', None)
    if sock is None:
        return None
    try:
        return ipaddress.ip_address(sock.getpeername()[0].split('%')[0])
    except (OSError, ValueError, TypeError, IndexError):
        return None


def _check_peer(response, url):
    # Through a proxy the peer is the proxy itself
    if requests.utils.get_environ_proxies(url):
        return
    ip = _peer_address(response)
    if ip is not None and _is_blocked_address(ip):
        raise ValidationError(f'Refusing {url}: connected to non-public address {ip}')


def _open(url, timeout):
    """
    GET a URL, following redirects by hand.

    Each redirect target goes through validate_url_security before it is
    requested, and the final connection is checked against the resolved
    peer address so DNS changes between check and connect are caught.

    Returns:
        requests.Response: streaming response with a non-redirect status
    """
    current = url
    for _ in range(MAX_REDIRECTS + 1):
        try:
            response = requests.get(
                current,
                stream=True,
                timeout=timeout,
                allow_redirects=False,
                headers={'User-Agent': USER_AGENT},
            )
        except requests.RequestException as e:
            raise TransientError(f'HTTP request failed: {e}') from e

        if response.status_code not in REDIRECT_STATUSES:
            try:
                _check_peer(response, current)
            except ValidationError:
                response.close()
                raise
            return response

        location = response.headers.get('location')
        response.close()
        if not location:
            raise ValidationError(f'Redirect from {current} has no Location header')
        current = urljoin(current, location)
        validate_url_security(current)

    raise ValidationError(f'Too many redirects for {url}')


def _temp_path_for(url):
    temp_dir = Path(get_temp_dir())
    temp_dir.mkdir(parents=True, exist_ok=True)
    return temp_dir / f'mediasync_{generate_nanoid()}_{filename_from_url(url)}'


def _download_once(url, content_class, log):
    timeout = get_timeout_for_class(content_class)
    max_bytes = get_max_bytes_for_class(content_class)

    response = _open(url, timeout)

    out_path = _temp_path_for(url)
    try:
        if response.status_code != 200:
            raise TransientError(f'HTTP {response.status_code} from {url}')

        content_length = response.headers.get('content-length')
        if content_length is not None:
            try:
                declared = int(content_length)
            except ValueError:
                declared = None
            if declared == 0:
                raise ValidationError('Response reports an empty body (Content-Length: 0)')
            if declared is not None and declared > max_bytes:
                raise ValidationError(
                    f'Response size {declared} exceeds {content_class} limit of {max_bytes} bytes'
                )

        file_size = 0
        with open(out_path, 'wb') as f:
            try:
                for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                    if not chunk:
                        continue
                    file_size += len(chunk)
                    if file_size > max_bytes:
                        raise ValidationError(
                            f'Download exceeded {content_class} limit of {max_bytes} bytes'
                        )
                    f.write(chunk)
            except requests.RequestException as e:
                raise TransientError(f'Connection lost while streaming: {e}') from e

        if file_size == 0:
            raise TransientError(f'Empty body from {url}')
    except BaseException:
        out_path.unlink(missing_ok=True)
        raise
    finally:
        response.close()

    log(f'Downloaded {file_size} bytes to {out_path.name}')
    return DownloadedFileInfo(
        path=out_path,
        file_size=file_size,
        source_url=url,
        filename=filename_from_url(url),
        raw_mime=clean_mime(response.headers.get('content-type')),
    )


def download(url, content_class=CONTENT_CLASS_IMAGE, logger=None, sleep=time.sleep):
    """
    Download a URL into a temp file.

    Transient failures (connection errors, non-200 responses, empty bodies)
    are retried with 1s, 2s, ... backoff. Security and size violations fail
    immediately. No temp file is left behind when this raises.

    Args:
        url: Source URL
        content_class: 'image' or 'file', selects timeout and size limit
        logger: Optional callable(str) for logging
        sleep: Callable used for backoff waits

    Returns:
        DownloadedFileInfo

    Raises:
        ValidationError: blocked URL or redirect, empty or oversized response
        DownloadError: all attempts failed
    """

    def log(message):
        if logger:
            logger(message)

    validate_url_security(url)

    attempts = get_download_attempts()
    retrying = Retrying(
        stop=stop_after_attempt(attempts),
        wait=wait_exponential(multiplier=1, min=1),
        retry=retry_if_exception_type(TransientError),
        before_sleep=lambda state: log(f'Attempt {state.attempt_number} failed: {state.outcome.exception()}'),
        sleep=sleep,
        reraise=False,
    )
    try:
        for attempt in retrying:
            with attempt:
                log(f'Downloading from: {url} (attempt {attempt.retry_state.attempt_number}/{attempts})')
                result = _download_once(url, content_class, log)
    except RetryError as e:
        last_error = e.last_attempt.exception()
        raise DownloadError(
            f'Failed to download {url} after {attempts} attempts: {last_error}', attempts=attempts
        ) from last_error
    return result
