import pulumi
import pulumi_kubernetes as k8s


class DefaultStorageClass(pulumi.ComponentResource):
    """Encrypted gp3 StorageClass marked as the cluster default."""

    def __init__(
        self,
        name: str,
        provider: k8s.Provider,
        depends_on: list[pulumi.Resource] | None = None,
        opts: pulumi.ResourceOptions | None = None,
    ):
        super().__init__("opengovernance:infrastructure:DefaultStorageClass", name, None, opts)

        # gp2 ships as the EKS default; two defaults make PVC binding ambiguous
        self.gp2_patch = k8s.storage.v1.StorageClassPatch(
            f"{name}-gp2-not-default",
            metadata=k8s.meta.v1.ObjectMetaPatchArgs(
                name="gp2",
                annotations={"storageclass.kubernetes.io/is-default-class": "false"},
            ),
            opts=pulumi.ResourceOptions(
                parent=self,
                provider=provider,
                depends_on=depends_on or [],
            ),
        )

        self.storage_class = k8s.storage.v1.StorageClass(
            f"{name}-gp3",
            metadata=k8s.meta.v1.ObjectMetaArgs(
                name="gp3",
                annotations={"storageclass.kubernetes.io/is-default-class": "true"},
            ),
            provisioner="ebs.csi.aws.com",
            parameters={"type": "gp3", "fsType": "ext4", "encrypted": "true"},
            volume_binding_mode="WaitForFirstConsumer",
            allow_volume_expansion=True,
            reclaim_policy="Delete",
            opts=pulumi.ResourceOptions(
                parent=self,
                provider=provider,
                depends_on=[self.gp2_patch],
            ),
        )

        self.register_outputs({"storage_class": self.storage_class.metadata.name})
