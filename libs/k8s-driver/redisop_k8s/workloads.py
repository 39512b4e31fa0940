"""Shared builders for pod-template based workloads."""

from typing import Any

from kubernetes.client import V1Container, V1ContainerPort, V1EnvVar, V1ObjectMeta
from kubernetes.client import V1OwnerReference, V1PodSpec, V1PodTemplateSpec
from kubernetes.client import V1ResourceRequirements, V1Volume, V1VolumeMount

from .models import ResourceSpec, WorkloadSpec


def build_owner_references(refs: list[dict[str, Any]]) -> list[V1OwnerReference]:
    return [
        V1OwnerReference(
            api_version=ref["apiVersion"],
            kind=ref["kind"],
            name=ref["name"],
            uid=ref["uid"],
            controller=ref.get("controller"),
            block_owner_deletion=ref.get("blockOwnerDeletion"),
        )
        for ref in refs
    ]


def build_metadata(spec: ResourceSpec) -> V1ObjectMeta:
    return V1ObjectMeta(
        name=spec.name,
        namespace=spec.namespace,
        labels=spec.labels,
        annotations=spec.annotations or None,
        owner_references=build_owner_references(spec.owner_references) or None,
    )


def build_pod_template(spec: WorkloadSpec) -> V1PodTemplateSpec:
    """
    Build the pod template of a single-container workload.

    Args:
        spec: Workload specification

    Returns:
        V1PodTemplateSpec
    """
    container = V1Container(
        name=spec.container_name,
        image=spec.image,
        command=spec.command,
        args=spec.args,
        env=[V1EnvVar(name=k, value=v) for k, v in spec.env.items()],
        ports=[V1ContainerPort(**port) for port in spec.ports],
        volume_mounts=[V1VolumeMount(**vm) for vm in spec.volume_mounts],
    )

    if spec.resources:
        container.resources = V1ResourceRequirements(**spec.resources)

    pod_spec = V1PodSpec(
        containers=[container],
        volumes=[V1Volume(**vol) for vol in spec.volumes] if spec.volumes else None,
    )

    return V1PodTemplateSpec(
        metadata=V1ObjectMeta(
            labels={**spec.pod_labels, **spec.selector},
            annotations=spec.pod_annotations or None,
        ),
        spec=pod_spec,
    )
