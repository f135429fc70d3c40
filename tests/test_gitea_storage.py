import base64
import json

import httpx
import pytest

from pytfstate.errors import StorageError, FileAlreadyExistsError
from pytfstate.storage.gitea import GiteaStorage

from conftest import make_settings

CONTENTS_PATH = '/api/v1/repos/testowner/testrepo/contents/states/proj/terraform.tfstate'


def _contents_payload(content: bytes, sha: str = 'abc123') -> dict:
    return {
        'name': 'terraform.tfstate',
        'path': 'states/proj/terraform.tfstate',
        'sha': sha,
        'type': 'file',
        'encoding': 'base64',
        'content': base64.b64encode(content).decode('ascii'),
    }


def _storage(handler, branch: str = 'main') -> GiteaStorage:
    client = httpx.Client(transport=httpx.MockTransport(handler), timeout=10.0)
    return GiteaStorage('https://gitea.example.com/', 'test-token', 'testowner', 'testrepo', branch, client=client)


def test_get_file_decodes_content_and_returns_sha():
    calls = {'last_request': None}

    def handler(request: httpx.Request) -> httpx.Response:
        calls['last_request'] = request
        return httpx.Response(200, json=_contents_payload(b'{"version":4}', sha='deadbeef'))

    with _storage(handler, branch='develop') as storage:
        found = storage.get_file('states/proj/terraform.tfstate')

    assert found == (b'{"version":4}', 'deadbeef')
    req = calls['last_request']
    assert req.method == 'GET'
    assert req.url.host == 'gitea.example.com'
    assert req.url.path == CONTENTS_PATH
    assert req.url.params.get('ref') == 'develop'
    assert req.headers['Authorization'] == 'token test-token'


def test_get_file_accepts_line_wrapped_base64():
    encoded = base64.encodebytes(b'x' * 200).decode('ascii')  # wrapped at 76 columns

    def handler(_: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={'type': 'file', 'sha': 's', 'content': encoded})

    assert _storage(handler).get_file('states/proj/terraform.tfstate') == (b'x' * 200, 's')


def test_get_missing_file_returns_none():
    def handler(_: httpx.Request) -> httpx.Response:
        return httpx.Response(404, json={'message': 'GetContentsOrList', 'url': 'https://gitea.example.com/api/swagger'})

    assert _storage(handler).get_file('states/proj/terraform.tfstate') is None


def test_get_directory_listing_returns_none():
    def handler(_: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=[_contents_payload(b'{}')])

    assert _storage(handler).get_file('states/proj') is None


def test_get_file_server_error_raises_storage_error():
    def handler(_: httpx.Request) -> httpx.Response:
        return httpx.Response(500, text='internal error')

    with pytest.raises(StorageError, match='HTTP 500'):
        _storage(handler).get_file('states/proj/terraform.tfstate')


def test_get_file_transport_error_raises_storage_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError('connection refused', request=request)

    with pytest.raises(StorageError) as exc_info:
        _storage(handler).get_file('states/proj/terraform.tfstate')
    assert isinstance(exc_info.value.__cause__, httpx.ConnectError)


def test_path_segments_are_quoted():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.url.raw_path)
        return httpx.Response(404)

    _storage(handler).get_file('states/my project/terraform.tfstate')

    assert seen[0].startswith(b'/api/v1/repos/testowner/testrepo/contents/states/my%20project/terraform.tfstate')


def test_create_or_update_creates_missing_file():
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        if request.method == 'GET':
            return httpx.Response(404)
        return httpx.Response(201, json={'content': _contents_payload(b'{}')})

    _storage(handler).create_or_update_file('states/proj/terraform.tfstate', b'{"serial":1}', 'Update state: proj')

    assert [r.method for r in requests] == ['GET', 'POST']
    payload = json.loads(requests[1].content)
    assert base64.b64decode(payload['content']) == b'{"serial":1}'
    assert payload['message'] == 'Update state: proj'
    assert payload['branch'] == 'main'
    assert 'sha' not in payload


def test_create_or_update_updates_existing_file_with_sha():
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        if request.method == 'GET':
            return httpx.Response(200, json=_contents_payload(b'{"serial":1}', sha='old-sha'))
        return httpx.Response(200, json={'content': _contents_payload(b'{}')})

    _storage(handler).create_or_update_file('states/proj/terraform.tfstate', b'{"serial":2}', 'Update state: proj')

    assert [r.method for r in requests] == ['GET', 'PUT']
    payload = json.loads(requests[1].content)
    assert payload['sha'] == 'old-sha'
    assert base64.b64decode(payload['content']) == b'{"serial":2}'


def test_create_or_update_recovers_from_create_race():
    requests = []
    state = {'exists': False}

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        if request.method == 'GET':
            if state['exists']:
                return httpx.Response(200, json=_contents_payload(b'{}', sha='racer-sha'))
            return httpx.Response(404)
        if request.method == 'POST':
            # Another writer created the file in between
            state['exists'] = True
            return httpx.Response(422, json={'message': 'repository file already exists'})
        return httpx.Response(200, json={})

    _storage(handler).create_or_update_file('states/proj/terraform.tfstate', b'{"serial":2}', 'Update state: proj')

    assert [r.method for r in requests] == ['GET', 'POST', 'GET', 'PUT']
    assert json.loads(requests[-1].content)['sha'] == 'racer-sha'


def test_create_file_conflict_raises_file_already_exists():
    def handler(_: httpx.Request) -> httpx.Response:
        return httpx.Response(422, json={'message': 'repository file already exists'})

    with pytest.raises(FileAlreadyExistsError) as exc_info:
        _storage(handler).create_file('states/proj/.lock', b'{}', 'Lock state: proj')

    assert exc_info.value.path == 'states/proj/.lock'
    assert isinstance(exc_info.value, StorageError)


def test_update_failure_raises_storage_error():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.method == 'GET':
            return httpx.Response(200, json=_contents_payload(b'{}'))
        return httpx.Response(409, json={'message': 'sha does not match'})

    with pytest.raises(StorageError, match='Failed to update'):
        _storage(handler).create_or_update_file('states/proj/terraform.tfstate', b'{}', 'Update state: proj')


def test_file_exists_reports_sha():
    def handler(_: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=_contents_payload(b'{}', sha='cafe'))

    assert _storage(handler).file_exists('states/proj/terraform.tfstate') == (True, 'cafe')


def test_injected_client_is_not_closed():
    client = httpx.Client(transport=httpx.MockTransport(lambda _: httpx.Response(404)))
    storage = GiteaStorage('https://gitea.example.com', 'test-token', 'testowner', 'testrepo', client=client)

    storage.close()

    assert not client.is_closed


def test_from_settings_uses_repository_settings():
    storage = GiteaStorage.from_settings(make_settings(GITEA_URL='https://git.internal/', GITEA_BRANCH='state'))
    try:
        assert storage.base_url == 'https://git.internal'
        assert storage.owner == 'testowner'
        assert storage.repo == 'testrepo'
        assert storage.branch == 'state'
    finally:
        storage.close()
