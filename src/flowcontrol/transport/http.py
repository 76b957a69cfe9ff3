"""
The control plane REST API over HTTP, using httpx.
"""
import logging
import ssl

import httpx

from flowcontrol.config.settings import ClientSettings
from flowcontrol.transport.base import Transport, Response, TransportError, check_response

logger = logging.getLogger(__name__)


def uses_client_certificate(settings: ClientSettings):
    return bool(settings.admin_cert and settings.admin_key)


def base_url(settings: ClientSettings):
    """
    The API root. Client certificate authentication always uses https.
    """
    scheme = 'https' if uses_client_certificate(settings) else settings.http_scheme
    return "%s://%s/%s" % (scheme, settings.host, settings.api_path)


def tls_context(settings: ClientSettings):
    """
    Server certificates are not verified. The admin certificate and key, when given, are
    presented to the server.
    """
    context = ssl.create_default_context()
    context.check_hostname = False
    context.verify_mode = ssl.CERT_NONE
    if uses_client_certificate(settings):
        context.load_cert_chain(settings.admin_cert, settings.admin_key)
    return context


class HttpTransport(Transport):
    """
    Performs calls against the REST API.
    When a username and password are configured, an access token is requested on construction
    and sent as a bearer token with each call.
    :param client: the httpx client to use. By default, one is created from the settings.
    """

    def __init__(self, settings: ClientSettings, client: httpx.Client=None, log=logger):
        self.settings = settings
        self.logger = log
        self.token = None
        self.client = client or self._create_client(settings)
        if settings.username and settings.password:
            self.authenticate()

    @staticmethod
    def _create_client(settings):
        url = base_url(settings)
        verify = tls_context(settings) if url.startswith('https') else True
        return httpx.Client(base_url=url, timeout=httpx.Timeout(settings.request_timeout), verify=verify)

    def authenticate(self):
        """
        Exchanges the username and password for an access token.
        raises RemoteRejected when the credentials are refused
        """
        path = 'access/token'
        try:
            response = self.client.post(path, data={'username': self.settings.username,
                                                    'password': self.settings.password})
        except httpx.HTTPError as e:
            raise TransportError("unable to request an access token: %s" % e) from e
        check_response(Response(response.status_code, response.text), 'POST', path)
        self.token = response.text.strip()
        self.logger.debug("authenticated as %s" % self.settings.username)

    def invoke(self, method, path, body=None) -> Response:
        headers = {}
        if body is not None:
            headers['Content-Type'] = 'application/json; charset=utf-8'
            headers['Accept'] = 'application/json'
            self.logger.debug("%s %s request data %s" % (method, path, body))
        if self.token:
            headers['Authorization'] = 'Bearer %s' % self.token
        try:
            response = self.client.request(method, path, json=body, headers=headers)
        except httpx.HTTPError as e:
            raise TransportError("%s %s failed: %s" % (method, path, e)) from e
        self.logger.debug("http call to %s resulted in code: %d" % (path, response.status_code))
        return Response(response.status_code, self._decode(response, method, path))

    @staticmethod
    def _decode(response: httpx.Response, method, path):
        """
        The body of a successful response is JSON. Rejections are kept as text.
        """
        if response.status_code >= 300:
            return response.text
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise TransportError("%s %s returned a malformed response: %s" % (method, path, e)) from e

    def close(self):
        self.client.close()
