from dataclasses import replace
from unittest.mock import AsyncMock, MagicMock, Mock, patch

import pytest
from app.config import get_settings
from app.services.tasks.factory import get_task_enqueuer
from app.services.tasks.gcp import CloudTasksEnqueuer
from app.services.tasks.inline import InlineEnqueuer
from app.services.tasks.interface import TASK_ENDPOINT_PATH, TASK_SECRET_HEADER
from app.services.tasks.local import LocalHttpEnqueuer


async def _noop_runner(job_id: str) -> None:
  return None


@pytest.mark.anyio
async def test_local_task_dispatch():
  """Verify that the local enqueuer posts to the worker endpoint with the shared secret."""
  settings = replace(get_settings(), task_service_provider="local-http", base_url="http://localhost:8000", task_secret="test-task-secret")

  with patch("app.services.tasks.local.httpx.AsyncClient") as mock_client_cls:
    mock_client = AsyncMock()
    mock_client_cls.return_value.__aenter__.return_value = mock_client
    mock_response = Mock()
    mock_response.raise_for_status = Mock()
    mock_client.post.return_value = mock_response

    enqueuer = get_task_enqueuer(settings, runner=_noop_runner)
    assert isinstance(enqueuer, LocalHttpEnqueuer)

    await enqueuer.enqueue("job-123")

    args, kwargs = mock_client.post.call_args
    assert args[0] == f"http://localhost:8000{TASK_ENDPOINT_PATH}"
    assert kwargs["json"] == {"job_id": "job-123"}
    assert kwargs["headers"] == {TASK_SECRET_HEADER: "test-task-secret"}


@pytest.mark.anyio
async def test_local_dispatch_requires_a_base_url():
  enqueuer = LocalHttpEnqueuer(replace(get_settings(), base_url=None, task_secret="secret"))
  with pytest.raises(RuntimeError):
    await enqueuer.enqueue("job-123")


def test_inline_is_the_default_dispatch():
  settings = replace(get_settings(), task_service_provider="inline")
  assert isinstance(get_task_enqueuer(settings, runner=_noop_runner), InlineEnqueuer)


def test_cloud_task_carries_secret_and_oidc_token():
  settings = replace(get_settings(), base_url="https://sermons.example.com/", task_secret="s3cret", cloud_tasks_queue_path="projects/p/locations/l/queues/q", cloud_run_invoker_service_account="invoker@p.iam.gserviceaccount.com")
  enqueuer = CloudTasksEnqueuer(settings, client=MagicMock())

  task = enqueuer._build_task("job-9")

  http_request = task["http_request"]
  assert http_request["url"] == f"https://sermons.example.com{TASK_ENDPOINT_PATH}"
  assert http_request["headers"][TASK_SECRET_HEADER] == "s3cret"
  assert http_request["body"] == b'{"job_id": "job-9"}'
  assert http_request["oidc_token"] == {"service_account_email": "invoker@p.iam.gserviceaccount.com"}


@pytest.mark.anyio
async def test_cloud_task_is_created_on_the_configured_queue():
  settings = replace(get_settings(), base_url="https://sermons.example.com", task_secret="s3cret", cloud_tasks_queue_path="projects/p/locations/l/queues/q")
  client = MagicMock()
  client.create_task.return_value = MagicMock(name="task")
  enqueuer = CloudTasksEnqueuer(settings, client=client)

  await enqueuer.enqueue("job-9")

  request = client.create_task.call_args.kwargs["request"]
  assert request["parent"] == "projects/p/locations/l/queues/q"
  assert "oidc_token" not in request["task"]["http_request"]
