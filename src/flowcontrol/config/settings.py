"""
Settings for a flow control client.

Settings are loaded from the layered 'flowcontrol' configuration files (see config.py), and
then overridden by environment variables, following the variable names used by
the NiFi terraform provider.
"""
import os

from flowcontrol.config.config import load_config, apply_conf_path
from flowcontrol.support.mixins import CommonEqualityMixin, StringerMixin

config_name = 'flowcontrol'

# environment variable -> client setting
environment_overrides = {
    'NIFI_HOST': 'host',
    'NIFI_HTTP_SCHEME': 'http_scheme',
    'NIFI_USERNAME': 'username',
    'NIFI_PASSWORD': 'password',
    'NIFI_API_PATH': 'api_path',
    'NIFI_ADMIN_CERT': 'admin_cert',
    'NIFI_ADMIN_KEY': 'admin_key',
}


class ClientSettings(CommonEqualityMixin, StringerMixin):
    """ How to reach and authenticate with the control plane. """

    def __init__(self, host='localhost:8443', http_scheme='https', api_path='nifi-api', username='', password='',
                 admin_cert='', admin_key='', request_timeout=30.0):
        self.host = host
        self.http_scheme = http_scheme
        self.api_path = api_path
        self.username = username
        self.password = password
        self.admin_cert = admin_cert
        self.admin_key = admin_key
        self.request_timeout = request_timeout

    @property
    def base_url(self):
        """
        >>> ClientSettings('nifi:8080', 'http').base_url
        'http://nifi:8080/nifi-api'
        """
        return "%s://%s/%s" % (self.http_scheme, self.host, self.api_path)

    def __str__(self):
        # the password is never logged
        return "ClientSettings{'base_url': '%s', 'username': '%s'}" % (self.base_url, self.username)


class ConvergenceSettings(CommonEqualityMixin, StringerMixin):
    """ How state transitions are polled. """

    def __init__(self, poll_interval=1.0, timeout=120.0):
        self.poll_interval = poll_interval
        self.timeout = timeout


class DrainSettings(CommonEqualityMixin, StringerMixin):
    """ How queue drop requests are polled. """

    def __init__(self, poll_interval=3.0, max_attempts=10):
        self.poll_interval = poll_interval
        self.max_attempts = max_attempts


class Settings(CommonEqualityMixin):
    def __init__(self, client=None, convergence=None, drain=None):
        self.client = client or ClientSettings()
        self.convergence = convergence or ConvergenceSettings()
        self.drain = drain or DrainSettings()


def apply_environment(client: ClientSettings, environ):
    """
    Overrides client settings from environment variables. Empty variables are ignored.
    """
    for variable, attribute in environment_overrides.items():
        value = environ.get(variable)
        if value:
            setattr(client, attribute, value)
    return client


def load_settings(directory=None, environ=os.environ, user_directory=None) -> Settings:
    """
    Loads the settings from the flowcontrol configuration files and the environment.
    :param directory: the directory holding flowcontrol.cfg and its specializations. Defaults to
        the directory of this module, which holds the schema.
    :param environ: the environment variables to apply over the configuration files.
    :param user_directory: the directory of the per-user override file. Defaults to the home directory.
    """
    schema_directory = os.path.dirname(__file__)
    conf = load_config(config_name, directory or schema_directory, user_directory, schema_directory)
    settings = Settings()
    apply_conf_path(conf, ['client'], settings.client)
    apply_conf_path(conf, ['convergence'], settings.convergence)
    apply_conf_path(conf, ['drain'], settings.drain)
    apply_environment(settings.client, environ)
    return settings
