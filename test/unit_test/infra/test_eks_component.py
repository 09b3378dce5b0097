from infra.components.eks import cluster_subnets, service_account_trust_policy

PRIVATE = ["subnet-p1", "subnet-p2"]
PUBLIC = ["subnet-u1"]


def test_public_endpoint_spans_both_tiers():
    assert cluster_subnets(PRIVATE, PUBLIC, private_only=False) == ["subnet-p1", "subnet-p2", "subnet-u1"]


def test_private_endpoint_stays_in_private_subnets():
    assert cluster_subnets(PRIVATE, PUBLIC, private_only=True) == PRIVATE


def test_trust_policy_is_scoped_to_one_service_account():
    policy = service_account_trust_policy(
        "arn:aws:iam::123456789012:oidc-provider/oidc.eks.us-east-1.amazonaws.com/id/ABC",
        "https://oidc.eks.us-east-1.amazonaws.com/id/ABC",
        "kube-system",
        "ebs-csi-controller-sa",
    )

    statement = policy["Statement"][0]
    assert statement["Action"] == "sts:AssumeRoleWithWebIdentity"
    assert statement["Condition"]["StringEquals"] == {
        "oidc.eks.us-east-1.amazonaws.com/id/ABC:aud": "sts.amazonaws.com",
        "oidc.eks.us-east-1.amazonaws.com/id/ABC:sub": "system:serviceaccount:kube-system:ebs-csi-controller-sa",
    }
