"""Magic Pod Web API client."""

import json
import logging
from collections.abc import AsyncGenerator, Sequence
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal, TypeAlias
from urllib.parse import quote

import aiohttp

from magicpod_api_client.config import ClientConfig
from magicpod_api_client.errors import ApiError, BatchRunNotFoundError
from magicpod_api_client.models.batch_run import (
    BatchRun,
    BatchRunsResponse,
    UploadedFile,
    parse_cross_batch_run_response,
)
from magicpod_api_client.packaging import prepare_upload_path

log = logging.getLogger(__name__)

FileIndexType: TypeAlias = Literal["line_number", "auto_increment"]
FileNameBodyType: TypeAlias = Literal["none", "screenshot_name"]
DownloadType: TypeAlias = Literal["all", "last_run"]

DOWNLOAD_CHUNK_SIZE = 64 * 1024


async def raise_for_status(response: aiohttp.ClientResponse) -> None:
    """Raise ApiError with the status line and body of a failed response."""
    if response.status != 200:
        text = await response.text()
        raise ApiError(f"{response.status} {response.reason}", text)


@dataclass(frozen=True, kw_only=True)
class MagicPodClient:
    """Client for the project-scoped endpoints of the Magic Pod Web API."""

    config: ClientConfig
    session: aiohttp.ClientSession = field(repr=False)
    project_path: str = field(repr=False)

    @classmethod
    @asynccontextmanager
    async def from_config(
        cls, config: ClientConfig
    ) -> AsyncGenerator["MagicPodClient", None]:
        """Create client with managed session lifecycle."""
        headers = {
            "Authorization": f"Token {config.token.get_secret_value()}",
            "Accept": "application/json",
            **config.http_headers,
        }
        async with aiohttp.ClientSession(
            base_url=config.api_base_url,
            headers=headers,
        ) as session:
            yield cls(
                config=config,
                session=session,
                project_path=(
                    f"{quote(config.organization, safe='')}"
                    f"/{quote(config.project, safe='')}"
                ),
            )

    async def start_batch_run(self, payload: str, is_group: bool) -> Sequence[BatchRun]:
        """Start a batch run, or a cross batch run when is_group is set.

        Args:
            payload: Test setting in JSON format
            is_group: Whether the payload targets a cross batch run

        Returns:
            Started batch runs in launch order

        Raises:
            ApiError: If the server rejects the request

        """
        endpoint = "cross-batch-run" if is_group else "batch-run"
        url = f"{self.project_path}/{endpoint}/"
        log.info("Starting %s: url=%s", endpoint, url)

        async with self.session.post(
            url, data=payload, headers={"Content-Type": "application/json"}
        ) as response:
            await raise_for_status(response)
            body = await response.read()

        if is_group:
            return parse_cross_batch_run_response(body)
        return [BatchRun.model_validate_json(body)]

    async def get_batch_run(self, batch_run_number: int) -> BatchRun:
        """Fetch status and test case counters of a batch run."""
        url = f"{self.project_path}/batch-run/{batch_run_number}/"

        async with self.session.get(url) as response:
            await raise_for_status(response)
            body = await response.read()

        return BatchRun.model_validate_json(body)

    async def latest_batch_run_number(self) -> int:
        """Return the number of the most recent batch run of the project.

        Raises:
            BatchRunNotFoundError: If the project has no batch run

        """
        url = f"{self.project_path}/batch-runs/"

        async with self.session.get(url, params={"count": "1"}) as response:
            await raise_for_status(response)
            body = await response.read()

        batch_runs = BatchRunsResponse.model_validate_json(body).batch_runs
        if not batch_runs:
            raise BatchRunNotFoundError("no batch run exists in this project")
        return batch_runs[0].batch_run_number

    async def upload_file(self, app_path: Path) -> int:
        """Upload an app/ipa/apk file and return its file number.

        ``.app`` directories are zipped before upload.

        Raises:
            UploadError: If the path cannot be uploaded
            ApiError: If the server rejects the upload

        """
        actual_path = prepare_upload_path(app_path)
        url = f"{self.project_path}/upload-file/"
        log.info("Uploading %s", actual_path)

        with actual_path.open("rb") as app_file:
            form = aiohttp.FormData()
            form.add_field("file", app_file, filename=actual_path.name)
            async with self.session.post(url, data=form) as response:
                await raise_for_status(response)
                body = await response.read()

        return UploadedFile.model_validate_json(body).file_no

    async def delete_file(self, file_no: int) -> None:
        """Delete an uploaded app file."""
        url = f"{self.project_path}/delete-file/"
        payload = json.dumps({"app_file_number": file_no})

        async with self.session.delete(
            url, data=payload, headers={"Content-Type": "application/json"}
        ) as response:
            await raise_for_status(response)

        log.info("Deleted app file %d", file_no)

    async def download_screenshots(
        self,
        batch_run_number: int,
        download_path: Path,
        *,
        file_index_type: FileIndexType = "line_number",
        file_name_body_type: FileNameBodyType = "screenshot_name",
        download_type: DownloadType = "all",
        mask_dynamically_changed_area: bool = False,
    ) -> None:
        """Download the screenshots of a batch run as a zip file.

        Nothing is written to download_path when the server answers with an
        error.
        """
        url = f"{self.project_path}/batch-runs/{batch_run_number}/screenshots/"
        params = {
            "file_index_type": file_index_type,
            "file_name_body_type": file_name_body_type,
            "download_type": download_type,
            "mask_dynamically_changed_area": str(mask_dynamically_changed_area).lower(),
        }

        async with self.session.get(url, params=params) as response:
            await raise_for_status(response)
            with download_path.open("wb") as output:
                async for chunk in response.content.iter_chunked(DOWNLOAD_CHUNK_SIZE):
                    output.write(chunk)

        log.info(
            "Screenshots of batch run %d saved to %s", batch_run_number, download_path
        )
