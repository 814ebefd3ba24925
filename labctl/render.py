"""
Render a Plan into lab files.

Produces the Vagrantfile describing every VM, the shared bootstrap script,
a .gitignore and the installer scripts for every tool the plan's VMs need.
Text files come from the Jinja2 templates in labctl/templates; installers
are copied from labctl/scripts.
"""
import os
from typing import Dict, Iterable, List

from jinja2 import (
    Environment,
    FileSystemLoader,
    StrictUndefined,
    TemplateNotFound,
    TemplateSyntaxError,
    UndefinedError,
)

from labctl.planning.models import Plan, Tool

BASE_INSTALLER = "install_base_packages.sh"
DEFAULT_BOX_IMAGE = "ubuntu/jammy64"

INSTALLERS = {
    Tool.KUBECTL: "install_kubectl.sh",
    Tool.HELM: "install_helm.sh",
    Tool.DOCKER: "install_docker.sh",
    Tool.CONTAINERD: "install_containerd.sh",
    Tool.KUBE_BINARIES: "install_kube_binaries.sh",
    Tool.KIND: "install_kind.sh",
    Tool.MINIKUBE: "install_minikube.sh",
    Tool.K3S: "install_k3s.sh",
    Tool.AZURE_CLI: "install_azure_cli.sh",
    Tool.AWS_CLI: "install_aws_cli.sh",
    Tool.GCLOUD: "install_gcloud.sh",
}


class RenderError(Exception):
    """A template could not be loaded or rendered."""
    pass


def get_template_path() -> str:
    """Get the absolute path to the templates directory."""
    return os.path.join(os.path.dirname(os.path.abspath(__file__)), 'templates')


def get_script_path() -> str:
    """Get the absolute path to the bundled installer scripts."""
    return os.path.join(os.path.dirname(os.path.abspath(__file__)), 'scripts')


def ruby_string(value) -> str:
    """Double-quoted Ruby literal with interpolation disabled."""
    escaped = str(value).replace("\\", "\\\\").replace('"', '\\"').replace("#{", "\\#{")
    return f'"{escaped}"'


def _environment() -> Environment:
    env = Environment(
        loader=FileSystemLoader(get_template_path()),
        trim_blocks=True,
        lstrip_blocks=True,
        keep_trailing_newline=True,
        undefined=StrictUndefined,
    )
    env.filters['ruby'] = ruby_string
    return env


def _render(template_name: str, **context) -> str:
    try:
        return _environment().get_template(template_name).render(**context)
    except TemplateNotFound as e:
        raise RenderError(f"Template not found: {e}") from e
    except TemplateSyntaxError as e:
        raise RenderError(f"Template syntax error in {template_name}: {e}") from e
    except UndefinedError as e:
        raise RenderError(f"Missing template variable in {template_name}: {e}") from e


def installers_for(tools: Iterable[Tool]) -> List[str]:
    """Ordered, de-duplicated installer scripts for a tool list."""
    ordered = [BASE_INSTALLER]
    for tool in tools:
        script = INSTALLERS.get(tool)
        if script and script not in ordered:
            ordered.append(script)
    return ordered


def plan_tools(plan: Plan) -> List[Tool]:
    """Every tool named in a VM's TOOLS variable, in first-seen order."""
    tools: List[Tool] = []
    for node in plan.nodes:
        listed = plan.node_env.get(node.name, {}).get("TOOLS", "")
        for value in filter(None, listed.split(",")):
            tool = Tool.parse(value)
            if tool not in tools:
                tools.append(tool)
    return tools


def render_vagrantfile(plan: Plan, box_image: str = DEFAULT_BOX_IMAGE) -> str:
    vms = []
    for node in plan.nodes:
        env = dict(plan.env)
        env.update(plan.node_env.get(node.name, {}))
        vms.append({'node': node, 'env': env})
    return _render('Vagrantfile.j2', box_image=box_image, vms=vms)


def render_bootstrap(plan: Plan) -> str:
    return _render(
        'bootstrap.sh.j2',
        env=plan.env,
        base_installer=BASE_INSTALLER,
        installers=[(tool.value, script) for tool, script in INSTALLERS.items()],
    )


def render_gitignore() -> str:
    return _render('gitignore.j2')


def read_installer(script: str) -> str:
    path = os.path.join(get_script_path(), script)
    try:
        with open(path, encoding='utf-8') as f:
            return f.read()
    except FileNotFoundError as e:
        raise RenderError(f"Installer script not found: {script}") from e


def render_plan(plan: Plan, box_image: str = DEFAULT_BOX_IMAGE) -> Dict[str, str]:
    """All files for a plan, keyed by path relative to the output directory."""
    files = {
        "Vagrantfile": render_vagrantfile(plan, box_image),
        "scripts/bootstrap.sh": render_bootstrap(plan),
        ".gitignore": render_gitignore(),
    }
    for script in installers_for(plan_tools(plan)):
        files[f"scripts/{script}"] = read_installer(script)
    return files
