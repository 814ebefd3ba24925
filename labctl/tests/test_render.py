import os
import stat

import pytest

from labctl.planning import ClusterSpecification, ManagementSpecification, Tool, plan_topology
from labctl.render import BASE_INSTALLER, RenderError, installers_for, render_plan, ruby_string
from labctl.utils.fs import OutputExistsError, write_atomic


@pytest.fixture
def plan(kubeadm_cluster, topology):
    outcome = plan_topology(topology(
        kubeadm_cluster("prod", start_address="192.168.56.20", masters=1, workers=1),
        management=ManagementSpecification(name="mgmt"),
    ))
    assert outcome.planned
    return outcome.plan


def test_vagrantfile_has_every_node(plan):
    vagrantfile = render_plan(plan)["Vagrantfile"]
    assert vagrantfile.startswith('Vagrant.configure("2") do |config|')
    for node in plan.nodes:
        assert f'config.vm.define "{node.name}"' in vagrantfile
        assert f'ip: "{node.address}"' in vagrantfile
    assert '"CONTROL_PLANE" => "1"' in vagrantfile
    assert "vb.memory = 8192" in vagrantfile


def test_box_image_is_configurable(plan):
    assert 'config.vm.box = "generic/debian12"' in render_plan(plan, "generic/debian12")["Vagrantfile"]


def test_bootstrap_persists_module_env(plan):
    bootstrap = render_plan(plan)["scripts/bootstrap.sh"]
    assert bootstrap.startswith("#!/usr/bin/env bash")
    assert 'export MODULE_NUM="m7"' in bootstrap
    assert "kube_binaries) run_installer install_kube_binaries.sh ;;" in bootstrap


def test_installers_start_with_base_packages():
    scripts = installers_for([Tool.KUBECTL, Tool.DOCKER, Tool.KUBECTL])
    assert scripts == [BASE_INSTALLER, "install_kubectl.sh", "install_docker.sh"]


def test_global_env_reaches_every_vm(topology):
    cluster = ClusterSpecification.builder().name("dev").kind("kind").build()
    outcome = plan_topology(topology(cluster))
    vagrantfile = render_plan(outcome.plan)["Vagrantfile"]
    assert '"NAMESPACE_DEFAULT" => "ns-m7-hw"' in vagrantfile


def test_scaffold_ships_installers_for_every_vm_tool(plan):
    files = render_plan(plan)
    scripts = sorted(path for path in files if path.startswith("scripts/install_"))
    assert scripts == [
        "scripts/install_base_packages.sh",
        "scripts/install_containerd.sh",
        "scripts/install_kube_binaries.sh",
        "scripts/install_kubectl.sh",
    ]
    assert files["scripts/install_kubectl.sh"].startswith("#!/usr/bin/env bash")


def test_management_tools_add_installers(topology):
    cluster = ClusterSpecification.builder().name("dev").kind("kind").build()
    management = ManagementSpecification(name="mgmt", tools=(Tool.KUBECTL, Tool.HELM))
    files = render_plan(plan_topology(topology(cluster, management=management)).plan)
    assert "scripts/install_helm.sh" in files
    assert "scripts/install_kind.sh" in files
    assert "scripts/install_minikube.sh" not in files


def test_ruby_strings_disable_interpolation():
    assert ruby_string('say "#{hi}"') == '"say \\"\\#{hi}\\""'


def test_missing_template_raises_render_error(monkeypatch, tmp_path, plan):
    monkeypatch.setattr("labctl.render.get_template_path", lambda: str(tmp_path))
    with pytest.raises(RenderError):
        render_plan(plan)


def test_write_atomic(tmp_path, plan):
    output_dir = tmp_path / "hw-m7"
    write_atomic(output_dir, render_plan(plan))
    assert (output_dir / "Vagrantfile").is_file()
    script = output_dir / "scripts" / "bootstrap.sh"
    assert os.stat(script).st_mode & stat.S_IXUSR
    installer = output_dir / "scripts" / "install_kubectl.sh"
    assert os.stat(installer).st_mode & stat.S_IXUSR
    assert [p.name for p in tmp_path.iterdir()] == ["hw-m7"]


def test_write_atomic_refuses_existing_directory(tmp_path):
    output_dir = tmp_path / "hw-m7"
    output_dir.mkdir()
    with pytest.raises(OutputExistsError):
        write_atomic(output_dir, {"Vagrantfile": ""})
