"""
Request templates for the Cloud SQL Admin API.

Each template pairs an HTTP method with a Jinja2 URL template and an optional
JSON body template. Rendering is strict: a placeholder that is missing from
the data record is an error, never an empty string.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Union

import requests
from jinja2 import Environment, StrictUndefined, TemplateError

from errors import TemplateRenderError

API_BASE = "https://sqladmin.googleapis.com/sql/v1beta4"
TOKEN_INFO_URL = "https://www.googleapis.com/oauth2/v1/tokeninfo"


@dataclass(frozen=True)
class RequestTemplate:
    """A named request shape: method, URL template and optional body template."""

    name: str
    method: str
    url: str
    body: Optional[str] = None


TOKEN_INFO = RequestTemplate(
    name="token_info",
    method="GET",
    url=TOKEN_INFO_URL + "?access_token={{ access_token | urlencode }}",
)

INSTANCE = RequestTemplate(
    name="instance",
    method="GET",
    url="{{ api_base }}/projects/{{ project_id }}/instances/{{ instance_name }}",
)

SSL_POLICY = RequestTemplate(
    name="ssl_policy",
    method="PATCH",
    url="{{ api_base }}/projects/{{ project_id }}/instances/{{ instance_name }}",
    body=(
        '{"settings": {"ipConfiguration": '
        '{"requireSsl": "{{ require_ssl | lower }}"}}}'
    ),
)

AUTHORIZED_NETWORKS = RequestTemplate(
    name="authorized_networks",
    method="PATCH",
    url="{{ api_base }}/projects/{{ project_id }}/instances/{{ instance_name }}",
    body=(
        '{"settings": {"ipConfiguration": {"authorizedNetworks": ['
        "{% for network in networks %}"
        '{"value": {{ network.value | tojson }}, "name": {{ network.name | tojson }}}'
        "{% if not loop.last %}, {% endif %}"
        "{% endfor %}"
        "]}}}"
    ),
)

USER_PASSWORD = RequestTemplate(
    name="user_password",
    method="PUT",
    url=(
        "{{ api_base }}/projects/{{ project_id }}/instances/{{ instance_name }}"
        "/users?name={{ user | urlencode }}"
    ),
    body='{"name": {{ user | tojson }}, "password": {{ password | tojson }}}',
)

OPERATION_STATUS = RequestTemplate(
    name="operation_status",
    method="GET",
    url="{{ self_link }}",
)

TEMPLATES: Dict[str, RequestTemplate] = {
    t.name: t
    for t in (
        TOKEN_INFO,
        INSTANCE,
        SSL_POLICY,
        AUTHORIZED_NETWORKS,
        USER_PASSWORD,
        OPERATION_STATUS,
    )
}


class RequestRenderer:
    """Renders RequestTemplates into prepared ``requests`` objects."""

    DEFAULT_HEADERS = {"Content-Type": "application/json"}

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)
        self._env = Environment(undefined=StrictUndefined, autoescape=False)

    def lookup(self, template: Union[str, RequestTemplate]) -> RequestTemplate:
        """Resolve a template name to its RequestTemplate."""
        if isinstance(template, RequestTemplate):
            return template
        try:
            return TEMPLATES[template]
        except KeyError:
            raise TemplateRenderError(f"Unknown request template: {template}") from None

    def render_text(self, text: str, data: Any) -> str:
        """
        Render a single template string against a data record.

        Args:
            text: Jinja2 template text
            data: Mapping or object whose fields fill the placeholders

        Returns:
            Rendered string

        Raises:
            TemplateRenderError: If a field is missing or the text is malformed
        """
        context = _as_context(data)
        try:
            return self._env.from_string(text).render(context)
        except (TemplateError, TypeError) as e:
            raise TemplateRenderError(f"Failed to render template: {e}") from e

    def render(
        self,
        template: Union[str, RequestTemplate],
        url_data: Any,
        body_data: Any = None,
        credential=None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> requests.PreparedRequest:
        """
        Build a transport-ready request from a template.

        Args:
            template: RequestTemplate or registered template name
            url_data: Record used to fill the URL placeholders
            body_data: Record used to fill the body placeholders (defaults to url_data)
            credential: Optional Credential; adds the Authorization header
            headers: Extra headers to apply on top of the defaults

        Returns:
            Prepared request with method, URL, body and headers set

        Raises:
            TemplateRenderError: On missing fields, malformed text or an
                unusable URL
        """
        tmpl = self.lookup(template)
        url = self.render_text(tmpl.url, url_data)

        body: Optional[bytes] = None
        if tmpl.body:
            rendered = self.render_text(
                tmpl.body, url_data if body_data is None else body_data
            )
            body = rendered.encode("utf-8")

        all_headers = dict(self.DEFAULT_HEADERS)
        if credential is not None:
            all_headers.update(credential.authorization_header())
        if headers:
            all_headers.update(headers)

        try:
            prepared = requests.Request(
                tmpl.method, url, data=body, headers=all_headers
            ).prepare()
        except (requests.exceptions.RequestException, ValueError) as e:
            raise TemplateRenderError(
                f"Template {tmpl.name} produced an unusable request: {e}"
            ) from e

        self.logger.debug(f"Rendered {tmpl.name}: {tmpl.method} {_redact(url)}")
        return prepared


def _as_context(data: Any) -> Dict[str, Any]:
    if data is None:
        return {}
    if isinstance(data, Mapping):
        return dict(data)
    if hasattr(data, "__dict__"):
        return dict(vars(data))
    raise TemplateRenderError(f"Unsupported template data record: {type(data).__name__}")


def _redact(url: str) -> str:
    # tokeninfo carries the bearer token in its query string
    if "access_token=" in url:
        return url.split("access_token=")[0] + "access_token=***"
    return url
