"""Per-provider Terraform modules (network, kubernetes, database, cache).

Each builder returns a :class:`TerraformModule`: the resources for
``main.tf`` plus the variables and outputs that form the module interface.
Interface names (``subnet_ids``, ``private_subnet_ids``, ...) come from the
name registry so the root module wires them with the exact same spelling.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from functools import partial
from typing import Any

from ..naming import NameRegistry
from .hcl import Block, Expr, HclDocument, call, ref

REQUIRED: Any = object()

LOCAL_NAME = "${var.project_name}-${var.environment}"


@dataclass
class Variable:
    name: str
    type: str
    description: str
    default: Any = REQUIRED
    sensitive: bool = False

    def block(self) -> Block:
        block = Block("variable", self.name)
        block.attribute("description", self.description)
        block.attribute("type", Expr(self.type))
        if self.default is not REQUIRED:
            block.attribute("default", self.default)
        if self.sensitive:
            block.attribute("sensitive", True)
        return block


@dataclass
class Output:
    name: str
    value: Any
    description: str
    sensitive: bool = False
    depends_on: list[Expr] = field(default_factory=list)

    def block(self) -> Block:
        block = Block("output", self.name)
        block.attribute("description", self.description)
        block.attribute("value", self.value)
        if self.sensitive:
            block.attribute("sensitive", True)
        if self.depends_on:
            block.attribute("depends_on", list(self.depends_on))
        return block


@dataclass
class TerraformModule:
    """One ``modules/<provider>/<component>`` directory."""

    provider: str
    component: str
    main: HclDocument
    variables: list[Variable]
    outputs: list[Output]
    required_providers: tuple[str, ...] = ()

    @property
    def variable_names(self) -> list[str]:
        return [variable.name for variable in self.variables]

    def output(self, name: str) -> Output:
        for candidate in self.outputs:
            if candidate.name == name:
                return candidate
        raise KeyError(f"{self.provider}/{self.component} has no output {name!r}")

    def main_tf(self) -> str:
        return self.main.render()

    def variables_tf(self) -> str:
        doc = HclDocument()
        for variable in self.variables:
            doc.add(variable.block())
        return doc.render()

    def outputs_tf(self) -> str:
        doc = HclDocument()
        for output in self.outputs:
            doc.add(output.block())
        return doc.render()


# ---------------------------------------------------------------------------
# Shared pieces
# ---------------------------------------------------------------------------


def _output_name(names: NameRegistry, component: str, key: str) -> str:
    return names.resolve(f"tf.output.{component}.{key}")


def _input(names: NameRegistry, component: str, key: str) -> Expr:
    return ref("var", names.resolve(f"tf.input.{component}.{key}"))


def _input_variable(names: NameRegistry, component: str, key: str) -> Variable:
    descriptions = {
        "network_id": "ID of the network the resources attach to",
        "subnet_ids": "Subnets the resources are placed in",
    }
    types = {"network_id": "string", "subnet_ids": "list(string)"}
    return Variable(names.resolve(f"tf.input.{component}.{key}"), types[key], descriptions[key])


def _common_variables(provider: str) -> list[Variable]:
    variables = [
        Variable("project_name", "string", "Project name, used as a prefix for resource names"),
        Variable("environment", "string", "Deployment environment"),
    ]
    if provider == "aws":
        variables.append(Variable("tags", "map(string)", "Tags applied to every resource", {}))
    elif provider == "gcp":
        variables += [
            Variable("project_id", "string", "GCP project ID"),
            Variable("region", "string", "GCP region"),
            Variable("labels", "map(string)", "Labels applied to every resource", {}),
        ]
    elif provider == "azure":
        variables += [
            Variable("resource_group_name", "string", "Resource group holding the resources"),
            Variable("location", "string", "Azure region"),
            Variable("tags", "map(string)", "Tags applied to every resource", {}),
        ]
    return variables


def _document(**extra_locals: Any) -> HclDocument:
    doc = HclDocument()
    doc.block("locals").attributes(name=LOCAL_NAME, **extra_locals)
    return doc


def _aws_tags(suffix: str, **extra: str) -> Any:
    return call("merge", ref("var", "tags"), {"Name": f"${{local.name}}-{suffix}", **extra})


def _assume_role_policy(service: str) -> Any:
    return call(
        "jsonencode",
        {
            "Version": "2012-10-17",
            "Statement": [
                {
                    "Action": "sts:AssumeRole",
                    "Effect": "Allow",
                    "Principal": {"Service": service},
                }
            ],
        },
    )


def _security_group(doc: HclDocument, name: str, network_id: Expr, port: int) -> Block:
    """Security group admitting *port* from inside the VPC only."""
    doc.block("data", "aws_vpc", "selected").attribute("id", network_id)
    group = doc.block("resource", "aws_security_group", name)
    group.attributes(
        name=f"${{local.name}}-{name}",
        description=f"Access to the {name} from inside the VPC",
        vpc_id=network_id,
    )
    group.block("ingress").attributes(
        from_port=port,
        to_port=port,
        protocol="tcp",
        cidr_blocks=[Expr("data.aws_vpc.selected.cidr_block")],
    )
    group.block("egress").attributes(
        from_port=0, to_port=0, protocol="-1", cidr_blocks=["0.0.0.0/0"]
    )
    group.attribute("tags", _aws_tags(name))
    return group


# ---------------------------------------------------------------------------
# AWS
# ---------------------------------------------------------------------------


def aws_network(names: NameRegistry) -> TerraformModule:
    doc = HclDocument()
    doc.block("data", "aws_availability_zones", "available").attribute("state", "available")
    doc.block("locals").attributes(
        name=LOCAL_NAME,
        azs=call("slice", Expr("data.aws_availability_zones.available.names"), 0, ref("var", "az_count")),
    )

    vpc = doc.block("resource", "aws_vpc", "main")
    vpc.attributes(
        cidr_block=ref("var", "vpc_cidr"),
        enable_dns_hostnames=True,
        enable_dns_support=True,
        tags=_aws_tags("vpc"),
    )
    doc.block("resource", "aws_internet_gateway", "main").attributes(
        vpc_id=Expr("aws_vpc.main.id"), tags=_aws_tags("igw")
    )

    tiers = (
        ("public", 0, {"kubernetes.io/role/elb": "1"}),
        ("private", 10, {"kubernetes.io/role/internal-elb": "1"}),
        ("database", 20, {}),
    )
    for tier, offset, extra_tags in tiers:
        subnet = doc.block("resource", "aws_subnet", tier)
        index = Expr("count.index") if offset == 0 else Expr(f"count.index + {offset}")
        subnet.attributes(
            count=call("length", Expr("local.azs")),
            vpc_id=Expr("aws_vpc.main.id"),
            cidr_block=call("cidrsubnet", ref("var", "vpc_cidr"), 8, index),
            availability_zone=Expr("local.azs[count.index]"),
        )
        if tier == "public":
            subnet.attribute("map_public_ip_on_launch", True)
        subnet.attribute("tags", _aws_tags(f"{tier}-${{count.index}}", **extra_tags))

    nat_count = Expr("var.single_nat_gateway ? 1 : length(local.azs)")
    doc.block("resource", "aws_eip", "nat").attributes(
        count=nat_count, domain="vpc", tags=_aws_tags("nat-${count.index}")
    )
    doc.block("resource", "aws_nat_gateway", "main").attributes(
        count=nat_count,
        allocation_id=Expr("aws_eip.nat[count.index].id"),
        subnet_id=Expr("aws_subnet.public[count.index].id"),
        tags=_aws_tags("nat-${count.index}"),
        depends_on=[Expr("aws_internet_gateway.main")],
    )

    public_rt = doc.block("resource", "aws_route_table", "public")
    public_rt.attribute("vpc_id", Expr("aws_vpc.main.id"))
    public_rt.block("route").attributes(
        cidr_block="0.0.0.0/0", gateway_id=Expr("aws_internet_gateway.main.id")
    )
    public_rt.attribute("tags", _aws_tags("public"))

    private_rt = doc.block("resource", "aws_route_table", "private")
    private_rt.attributes(count=call("length", Expr("local.azs")), vpc_id=Expr("aws_vpc.main.id"))
    private_rt.block("route").attributes(
        cidr_block="0.0.0.0/0",
        nat_gateway_id=Expr("aws_nat_gateway.main[var.single_nat_gateway ? 0 : count.index].id"),
    )
    private_rt.attribute("tags", _aws_tags("private-${count.index}"))

    for tier, table in (("public", "aws_route_table.public.id"),
                        ("private", "aws_route_table.private[count.index].id")):
        doc.block("resource", "aws_route_table_association", tier).attributes(
            count=call("length", Expr("local.azs")),
            subnet_id=Expr(f"aws_subnet.{tier}[count.index].id"),
            route_table_id=Expr(table),
        )

    out = partial(_output_name, names, "network")
    return TerraformModule(
        provider="aws",
        component="network",
        main=doc,
        variables=_common_variables("aws") + [
            Variable("vpc_cidr", "string", "CIDR block of the VPC", "10.0.0.0/16"),
            Variable("az_count", "number", "Number of availability zones to span", 3),
            Variable("single_nat_gateway", "bool", "Share one NAT gateway across zones", True),
        ],
        outputs=[
            Output(out("network_id"), Expr("aws_vpc.main.id"), "ID of the VPC"),
            Output(out("public_subnet_ids"), Expr("aws_subnet.public[*].id"), "Public subnet IDs"),
            Output(out("private_subnet_ids"), Expr("aws_subnet.private[*].id"), "Private subnet IDs"),
            Output(out("database_subnet_ids"), Expr("aws_subnet.database[*].id"), "Database subnet IDs"),
        ],
    )


def aws_kubernetes(names: NameRegistry) -> TerraformModule:
    network_id = _input(names, "kubernetes", "network_id")
    subnet_ids = _input(names, "kubernetes", "subnet_ids")
    doc = _document()

    cluster_role = doc.block("resource", "aws_iam_role", "cluster")
    cluster_role.attributes(
        name="${local.name}-eks-cluster",
        assume_role_policy=_assume_role_policy("eks.amazonaws.com"),
        tags=ref("var", "tags"),
    )
    doc.block("resource", "aws_iam_role_policy_attachment", "cluster").attributes(
        for_each=call("toset", [
            "arn:aws:iam::aws:policy/AmazonEKSClusterPolicy",
            "arn:aws:iam::aws:policy/AmazonEKSVPCResourceController",
        ]),
        policy_arn=Expr("each.value"),
        role=Expr("aws_iam_role.cluster.name"),
    )

    cluster_sg = doc.block("resource", "aws_security_group", "cluster")
    cluster_sg.attributes(
        name="${local.name}-eks-cluster",
        description="EKS control plane",
        vpc_id=network_id,
    )
    cluster_sg.block("egress").attributes(
        from_port=0, to_port=0, protocol="-1", cidr_blocks=["0.0.0.0/0"]
    )
    cluster_sg.attribute("tags", _aws_tags("eks-cluster"))

    cluster = doc.block("resource", "aws_eks_cluster", "main")
    cluster.attributes(
        name=Expr("local.name"),
        role_arn=Expr("aws_iam_role.cluster.arn"),
        version=ref("var", "kubernetes_version"),
    )
    cluster.block("vpc_config").attributes(
        subnet_ids=subnet_ids,
        security_group_ids=[Expr("aws_security_group.cluster.id")],
        endpoint_private_access=True,
        endpoint_public_access=True,
    )
    cluster.attributes(
        enabled_cluster_log_types=["api", "audit", "authenticator"],
        tags=ref("var", "tags"),
        depends_on=[Expr("aws_iam_role_policy_attachment.cluster")],
    )

    doc.block("resource", "aws_iam_role", "node").attributes(
        name="${local.name}-eks-node",
        assume_role_policy=_assume_role_policy("ec2.amazonaws.com"),
        tags=ref("var", "tags"),
    )
    doc.block("resource", "aws_iam_role_policy_attachment", "node").attributes(
        for_each=call("toset", [
            "arn:aws:iam::aws:policy/AmazonEKSWorkerNodePolicy",
            "arn:aws:iam::aws:policy/AmazonEKS_CNI_Policy",
            "arn:aws:iam::aws:policy/AmazonEC2ContainerRegistryReadOnly",
        ]),
        policy_arn=Expr("each.value"),
        role=Expr("aws_iam_role.node.name"),
    )

    nodes = doc.block("resource", "aws_eks_node_group", "main")
    nodes.attributes(
        cluster_name=Expr("aws_eks_cluster.main.name"),
        node_group_name="${local.name}-nodes",
        node_role_arn=Expr("aws_iam_role.node.arn"),
        subnet_ids=subnet_ids,
        instance_types=ref("var", "node_instance_types"),
    )
    nodes.block("scaling_config").attributes(
        desired_size=ref("var", "node_desired_count"),
        min_size=ref("var", "node_min_count"),
        max_size=ref("var", "node_max_count"),
    )
    nodes.block("update_config").attribute("max_unavailable", 1)
    nodes.attributes(
        tags=ref("var", "tags"),
        depends_on=[Expr("aws_iam_role_policy_attachment.node")],
    )

    doc.block("data", "tls_certificate", "eks").attribute(
        "url", Expr("aws_eks_cluster.main.identity[0].oidc[0].issuer")
    )
    doc.block("resource", "aws_iam_openid_connect_provider", "eks").attributes(
        client_id_list=["sts.amazonaws.com"],
        thumbprint_list=[Expr("data.tls_certificate.eks.certificates[0].sha1_fingerprint")],
        url=Expr("aws_eks_cluster.main.identity[0].oidc[0].issuer"),
        tags=ref("var", "tags"),
    )

    out = partial(_output_name, names, "kubernetes")
    return TerraformModule(
        provider="aws",
        component="kubernetes",
        main=doc,
        variables=_common_variables("aws") + [
            _input_variable(names, "kubernetes", "network_id"),
            _input_variable(names, "kubernetes", "subnet_ids"),
            Variable("kubernetes_version", "string", "EKS control plane version", "1.29"),
            Variable("node_instance_types", "list(string)", "Worker instance types", ["t3.medium"]),
            Variable("node_desired_count", "number", "Desired worker count", 2),
            Variable("node_min_count", "number", "Minimum worker count", 1),
            Variable("node_max_count", "number", "Maximum worker count", 5),
        ],
        outputs=[
            Output(out("cluster_name"), Expr("aws_eks_cluster.main.name"), "EKS cluster name"),
            Output(out("cluster_endpoint"), Expr("aws_eks_cluster.main.endpoint"), "EKS API endpoint"),
        ],
        required_providers=("tls",),
    )


def aws_database(names: NameRegistry) -> TerraformModule:
    network_id = _input(names, "database", "network_id")
    subnet_ids = _input(names, "database", "subnet_ids")
    doc = _document()

    doc.block("resource", "aws_db_subnet_group", "main").attributes(
        name="${local.name}-db", subnet_ids=subnet_ids, tags=_aws_tags("db")
    )
    _security_group(doc, "database", network_id, 5432)

    db = doc.block("resource", "aws_db_instance", "main")
    db.attributes(
        identifier=Expr("local.name"),
        engine="postgres",
        engine_version=ref("var", "engine_version"),
        instance_class=ref("var", "instance_class"),
        allocated_storage=ref("var", "allocated_storage"),
        max_allocated_storage=Expr("var.allocated_storage * 5"),
        storage_encrypted=True,
        db_name=ref("var", "database_name"),
        username=ref("var", "master_username"),
        manage_master_user_password=True,
        db_subnet_group_name=Expr("aws_db_subnet_group.main.name"),
        vpc_security_group_ids=[Expr("aws_security_group.database.id")],
        multi_az=ref("var", "high_availability"),
        backup_retention_period=ref("var", "backup_retention_days"),
        deletion_protection=ref("var", "deletion_protection"),
        skip_final_snapshot=Expr("!var.deletion_protection"),
        final_snapshot_identifier=Expr('var.deletion_protection ? "${local.name}-final" : null'),
        performance_insights_enabled=True,
        tags=_aws_tags("db"),
    )

    out = partial(_output_name, names, "database")
    return TerraformModule(
        provider="aws",
        component="database",
        main=doc,
        variables=_common_variables("aws") + [
            _input_variable(names, "database", "network_id"),
            _input_variable(names, "database", "subnet_ids"),
            Variable("database_name", "string", "Name of the application database"),
            Variable("master_username", "string", "Administrator user name", "app_admin"),
            Variable("engine_version", "string", "PostgreSQL engine version", "15"),
            Variable("instance_class", "string", "RDS instance class", "db.t3.medium"),
            Variable("allocated_storage", "number", "Initial storage in GiB", 20),
            Variable("backup_retention_days", "number", "Days to keep automated backups", 7),
            Variable("high_availability", "bool", "Deploy a standby in another zone", False),
            Variable("deletion_protection", "bool", "Protect the instance from deletion", False),
        ],
        outputs=[
            Output(out("database_endpoint"), Expr("aws_db_instance.main.endpoint"),
                   "Connection endpoint of the database"),
            Output(out("database_secret_id"),
                   Expr("aws_db_instance.main.master_user_secret[0].secret_arn"),
                   "Secrets Manager ARN holding the master credentials"),
        ],
    )


def aws_cache(names: NameRegistry) -> TerraformModule:
    network_id = _input(names, "cache", "network_id")
    subnet_ids = _input(names, "cache", "subnet_ids")
    doc = _document()

    doc.block("resource", "aws_elasticache_subnet_group", "main").attributes(
        name="${local.name}-cache", subnet_ids=subnet_ids
    )
    _security_group(doc, "cache", network_id, 6379)

    doc.block("resource", "aws_elasticache_replication_group", "main").attributes(
        replication_group_id=Expr("local.name"),
        description="Redis for ${local.name}",
        engine="redis",
        engine_version="7.1",
        node_type=ref("var", "node_type"),
        num_cache_clusters=Expr("var.high_availability ? 2 : 1"),
        automatic_failover_enabled=ref("var", "high_availability"),
        port=6379,
        subnet_group_name=Expr("aws_elasticache_subnet_group.main.name"),
        security_group_ids=[Expr("aws_security_group.cache.id")],
        at_rest_encryption_enabled=True,
        transit_encryption_enabled=True,
        tags=_aws_tags("cache"),
    )

    return TerraformModule(
        provider="aws",
        component="cache",
        main=doc,
        variables=_common_variables("aws") + [
            _input_variable(names, "cache", "network_id"),
            _input_variable(names, "cache", "subnet_ids"),
            Variable("node_type", "string", "ElastiCache node type", "cache.t3.micro"),
            Variable("high_availability", "bool", "Run a replica with automatic failover", False),
        ],
        outputs=[
            Output(_output_name(names, "cache", "cache_endpoint"),
                   Expr("aws_elasticache_replication_group.main.primary_endpoint_address"),
                   "Primary endpoint of the Redis replication group"),
        ],
    )


# ---------------------------------------------------------------------------
# GCP
# ---------------------------------------------------------------------------


def gcp_network(names: NameRegistry) -> TerraformModule:
    doc = _document()

    doc.block("resource", "google_compute_network", "main").attributes(
        name="${local.name}-vpc",
        project=ref("var", "project_id"),
        auto_create_subnetworks=False,
        routing_mode="REGIONAL",
    )

    for tier, offset in (("public", 0), ("private", 10), ("database", 20)):
        subnet = doc.block("resource", "google_compute_subnetwork", tier)
        subnet.attributes(
            name=f"${{local.name}}-{tier}",
            project=ref("var", "project_id"),
            region=ref("var", "region"),
            network=Expr("google_compute_network.main.id"),
            ip_cidr_range=call("cidrsubnet", ref("var", "vpc_cidr"), 8, offset),
            private_ip_google_access=tier != "public",
        )
        if tier == "private":
            subnet.block("secondary_ip_range").attributes(
                range_name="pods", ip_cidr_range=call("cidrsubnet", ref("var", "vpc_cidr"), 2, 2)
            )
            subnet.block("secondary_ip_range").attributes(
                range_name="services",
                ip_cidr_range=call("cidrsubnet", ref("var", "vpc_cidr"), 4, 12),
            )

    doc.block("resource", "google_compute_router", "main").attributes(
        name="${local.name}-router",
        project=ref("var", "project_id"),
        region=ref("var", "region"),
        network=Expr("google_compute_network.main.id"),
    )
    doc.block("resource", "google_compute_router_nat", "main").attributes(
        name="${local.name}-nat",
        project=ref("var", "project_id"),
        region=ref("var", "region"),
        router=Expr("google_compute_router.main.name"),
        nat_ip_allocate_option="AUTO_ONLY",
        source_subnetwork_ip_ranges_to_nat="ALL_SUBNETWORKS_ALL_IP_RANGES",
    )

    doc.comment("Private services access for Cloud SQL and Memorystore")
    doc.block("resource", "google_compute_global_address", "private_services").attributes(
        name="${local.name}-private-services",
        project=ref("var", "project_id"),
        purpose="VPC_PEERING",
        address_type="INTERNAL",
        prefix_length=16,
        network=Expr("google_compute_network.main.id"),
    )
    doc.block("resource", "google_service_networking_connection", "private_services").attributes(
        network=Expr("google_compute_network.main.id"),
        service="servicenetworking.googleapis.com",
        reserved_peering_ranges=[Expr("google_compute_global_address.private_services.name")],
    )

    out = partial(_output_name, names, "network")
    return TerraformModule(
        provider="gcp",
        component="network",
        main=doc,
        variables=_common_variables("gcp") + [
            Variable("vpc_cidr", "string", "Base CIDR block for the subnets", "10.0.0.0/16"),
        ],
        outputs=[
            Output(out("network_id"), Expr("google_compute_network.main.id"), "ID of the VPC network",
                   depends_on=[Expr("google_service_networking_connection.private_services")]),
            Output(out("public_subnet_ids"), [Expr("google_compute_subnetwork.public.id")],
                   "Public subnet IDs"),
            Output(out("private_subnet_ids"), [Expr("google_compute_subnetwork.private.id")],
                   "Private subnet IDs"),
            Output(out("database_subnet_ids"), [Expr("google_compute_subnetwork.database.id")],
                   "Database subnet IDs"),
        ],
    )


def gcp_kubernetes(names: NameRegistry) -> TerraformModule:
    network_id = _input(names, "kubernetes", "network_id")
    subnet_ids = _input(names, "kubernetes", "subnet_ids")
    doc = _document()

    doc.block("resource", "google_service_account", "nodes").attributes(
        project=ref("var", "project_id"),
        account_id=Expr('trimsuffix(substr("${local.name}-nodes", 0, 30), "-")'),
        display_name="GKE nodes for ${local.name}",
    )

    cluster = doc.block("resource", "google_container_cluster", "main")
    cluster.attributes(
        name=Expr("local.name"),
        project=ref("var", "project_id"),
        location=ref("var", "region"),
        network=network_id,
        subnetwork=Expr(f"{subnet_ids}[0]"),
        remove_default_node_pool=True,
        initial_node_count=1,
        networking_mode="VPC_NATIVE",
        deletion_protection=ref("var", "deletion_protection"),
        resource_labels=ref("var", "labels"),
    )
    cluster.block("ip_allocation_policy").attributes(
        cluster_secondary_range_name="pods", services_secondary_range_name="services"
    )
    cluster.block("workload_identity_config").attribute(
        "workload_pool", "${var.project_id}.svc.id.goog"
    )
    cluster.block("release_channel").attribute("channel", "REGULAR")
    cluster.block("private_cluster_config").attributes(
        enable_private_nodes=True,
        enable_private_endpoint=False,
        master_ipv4_cidr_block="172.16.0.0/28",
    )

    pool = doc.block("resource", "google_container_node_pool", "main")
    pool.attributes(
        name="default",
        project=ref("var", "project_id"),
        location=ref("var", "region"),
        cluster=Expr("google_container_cluster.main.name"),
        initial_node_count=ref("var", "node_desired_count"),
    )
    pool.block("autoscaling").attributes(
        min_node_count=ref("var", "node_min_count"), max_node_count=ref("var", "node_max_count")
    )
    pool.block("management").attributes(auto_repair=True, auto_upgrade=True)
    node_config = pool.block("node_config")
    node_config.attributes(
        machine_type=ref("var", "machine_type"),
        service_account=Expr("google_service_account.nodes.email"),
        oauth_scopes=["https://www.googleapis.com/auth/cloud-platform"],
        labels=ref("var", "labels"),
    )
    node_config.block("workload_metadata_config").attribute("mode", "GKE_METADATA")

    out = partial(_output_name, names, "kubernetes")
    return TerraformModule(
        provider="gcp",
        component="kubernetes",
        main=doc,
        variables=_common_variables("gcp") + [
            _input_variable(names, "kubernetes", "network_id"),
            _input_variable(names, "kubernetes", "subnet_ids"),
            Variable("machine_type", "string", "Node machine type", "e2-standard-4"),
            Variable("node_desired_count", "number", "Initial nodes per zone", 1),
            Variable("node_min_count", "number", "Minimum nodes per zone", 1),
            Variable("node_max_count", "number", "Maximum nodes per zone", 5),
            Variable("deletion_protection", "bool", "Protect the cluster from deletion", False),
        ],
        outputs=[
            Output(out("cluster_name"), Expr("google_container_cluster.main.name"), "GKE cluster name"),
            Output(out("cluster_endpoint"), Expr("google_container_cluster.main.endpoint"),
                   "GKE API endpoint"),
        ],
    )


def gcp_database(names: NameRegistry) -> TerraformModule:
    network_id = _input(names, "database", "network_id")
    doc = _document()

    instance = doc.block("resource", "google_sql_database_instance", "main")
    instance.attributes(
        name=Expr("local.name"),
        project=ref("var", "project_id"),
        region=ref("var", "region"),
        database_version="POSTGRES_15",
        deletion_protection=ref("var", "deletion_protection"),
    )
    settings = instance.block("settings")
    settings.attributes(
        tier=ref("var", "tier"),
        availability_type=Expr('var.high_availability ? "REGIONAL" : "ZONAL"'),
        disk_autoresize=True,
        user_labels=ref("var", "labels"),
    )
    settings.block("ip_configuration").attributes(ipv4_enabled=False, private_network=network_id)
    settings.block("backup_configuration").attributes(
        enabled=True, point_in_time_recovery_enabled=True
    )

    doc.block("resource", "google_sql_database", "main").attributes(
        name=ref("var", "database_name"),
        project=ref("var", "project_id"),
        instance=Expr("google_sql_database_instance.main.name"),
    )

    secret = doc.block("resource", "google_secret_manager_secret", "database_url")
    secret.attributes(
        project=ref("var", "project_id"),
        secret_id="${local.name}-database-url",
        labels=ref("var", "labels"),
    )
    secret.block("replication").block("auto")

    out = partial(_output_name, names, "database")
    return TerraformModule(
        provider="gcp",
        component="database",
        main=doc,
        variables=_common_variables("gcp") + [
            _input_variable(names, "database", "network_id"),
            Variable("database_name", "string", "Name of the application database"),
            Variable("tier", "string", "Cloud SQL machine tier", "db-custom-2-7680"),
            Variable("high_availability", "bool", "Use a regional (HA) instance", False),
            Variable("deletion_protection", "bool", "Protect the instance from deletion", False),
        ],
        outputs=[
            Output(out("database_endpoint"),
                   Expr("google_sql_database_instance.main.private_ip_address"),
                   "Private IP of the Cloud SQL instance"),
            Output(out("database_secret_id"), Expr("google_secret_manager_secret.database_url.id"),
                   "Secret Manager secret holding the connection string"),
        ],
    )


def gcp_cache(names: NameRegistry) -> TerraformModule:
    network_id = _input(names, "cache", "network_id")
    doc = _document()

    doc.block("resource", "google_redis_instance", "main").attributes(
        name=Expr("local.name"),
        project=ref("var", "project_id"),
        region=ref("var", "region"),
        tier=Expr('var.high_availability ? "STANDARD_HA" : "BASIC"'),
        memory_size_gb=ref("var", "memory_size_gb"),
        redis_version="REDIS_7_0",
        authorized_network=network_id,
        connect_mode="PRIVATE_SERVICE_ACCESS",
        transit_encryption_mode="SERVER_AUTHENTICATION",
        labels=ref("var", "labels"),
    )

    return TerraformModule(
        provider="gcp",
        component="cache",
        main=doc,
        variables=_common_variables("gcp") + [
            _input_variable(names, "cache", "network_id"),
            Variable("memory_size_gb", "number", "Memorystore capacity in GiB", 1),
            Variable("high_availability", "bool", "Use the STANDARD_HA tier", False),
        ],
        outputs=[
            Output(_output_name(names, "cache", "cache_endpoint"),
                   Expr("google_redis_instance.main.host"), "Host of the Memorystore instance"),
        ],
    )


# ---------------------------------------------------------------------------
# Azure
# ---------------------------------------------------------------------------


def _azure_placement() -> dict[str, Expr]:
    return {
        "resource_group_name": ref("var", "resource_group_name"),
        "location": ref("var", "location"),
    }


def azure_network(names: NameRegistry) -> TerraformModule:
    doc = _document()

    doc.block("resource", "azurerm_virtual_network", "main").attributes(
        name="${local.name}-vnet",
        **_azure_placement(),
        address_space=[ref("var", "vpc_cidr")],
        tags=ref("var", "tags"),
    )

    for tier, newbits, netnum in (("public", 8, 0), ("private", 4, 1), ("database", 8, 40)):
        subnet = doc.block("resource", "azurerm_subnet", tier)
        subnet.attributes(
            name=tier,
            resource_group_name=ref("var", "resource_group_name"),
            virtual_network_name=Expr("azurerm_virtual_network.main.name"),
            address_prefixes=[call("cidrsubnet", ref("var", "vpc_cidr"), newbits, netnum)],
        )
        if tier == "database":
            delegation = subnet.block("delegation")
            delegation.attribute("name", "postgres")
            delegation.block("service_delegation").attributes(
                name="Microsoft.DBforPostgreSQL/flexibleServers",
                actions=["Microsoft.Network/virtualNetworks/subnets/join/action"],
            )

    out = partial(_output_name, names, "network")
    return TerraformModule(
        provider="azure",
        component="network",
        main=doc,
        variables=_common_variables("azure") + [
            Variable("vpc_cidr", "string", "Address space of the virtual network", "10.0.0.0/16"),
        ],
        outputs=[
            Output(out("network_id"), Expr("azurerm_virtual_network.main.id"), "ID of the VNet"),
            Output(out("public_subnet_ids"), [Expr("azurerm_subnet.public.id")], "Public subnet IDs"),
            Output(out("private_subnet_ids"), [Expr("azurerm_subnet.private.id")],
                   "Private subnet IDs"),
            Output(out("database_subnet_ids"), [Expr("azurerm_subnet.database.id")],
                   "Subnets delegated to PostgreSQL Flexible Server"),
        ],
    )


def azure_kubernetes(names: NameRegistry) -> TerraformModule:
    subnet_ids = _input(names, "kubernetes", "subnet_ids")
    doc = _document()

    cluster = doc.block("resource", "azurerm_kubernetes_cluster", "main")
    cluster.attributes(
        name=Expr("local.name"),
        **_azure_placement(),
        dns_prefix=Expr("local.name"),
        kubernetes_version=ref("var", "kubernetes_version"),
        oidc_issuer_enabled=True,
        workload_identity_enabled=True,
    )
    cluster.block("default_node_pool").attributes(
        name="system",
        vm_size=ref("var", "vm_size"),
        vnet_subnet_id=Expr(f"{subnet_ids}[0]"),
        auto_scaling_enabled=True,
        min_count=ref("var", "node_min_count"),
        max_count=ref("var", "node_max_count"),
    )
    cluster.block("identity").attribute("type", "SystemAssigned")
    cluster.block("network_profile").attributes(
        network_plugin="azure",
        network_policy="azure",
        service_cidr="172.16.0.0/16",
        dns_service_ip="172.16.0.10",
    )
    cluster.attribute("tags", ref("var", "tags"))

    out = partial(_output_name, names, "kubernetes")
    return TerraformModule(
        provider="azure",
        component="kubernetes",
        main=doc,
        variables=_common_variables("azure") + [
            _input_variable(names, "kubernetes", "subnet_ids"),
            Variable("kubernetes_version", "string", "AKS Kubernetes version", "1.29"),
            Variable("vm_size", "string", "Node VM size", "Standard_D2s_v3"),
            Variable("node_min_count", "number", "Minimum node count", 1),
            Variable("node_max_count", "number", "Maximum node count", 5),
        ],
        outputs=[
            Output(out("cluster_name"), Expr("azurerm_kubernetes_cluster.main.name"), "AKS cluster name"),
            Output(out("cluster_endpoint"), Expr("azurerm_kubernetes_cluster.main.kube_config[0].host"),
                   "AKS API endpoint", sensitive=True),
        ],
    )


def azure_database(names: NameRegistry) -> TerraformModule:
    network_id = _input(names, "database", "network_id")
    subnet_ids = _input(names, "database", "subnet_ids")
    doc = _document(
        vault_name=call("format", "%skv", call("substr", call("replace", Expr("local.name"), "-", ""), 0, 21))
    )

    doc.block("data", "azurerm_client_config", "current")
    doc.block("resource", "random_password", "administrator").attributes(length=32, special=False)

    doc.block("resource", "azurerm_private_dns_zone", "postgres").attributes(
        name="${local.name}.postgres.database.azure.com",
        resource_group_name=ref("var", "resource_group_name"),
        tags=ref("var", "tags"),
    )
    doc.block("resource", "azurerm_private_dns_zone_virtual_network_link", "postgres").attributes(
        name="${local.name}-postgres",
        resource_group_name=ref("var", "resource_group_name"),
        private_dns_zone_name=Expr("azurerm_private_dns_zone.postgres.name"),
        virtual_network_id=network_id,
    )

    server = doc.block("resource", "azurerm_postgresql_flexible_server", "main")
    server.attributes(
        name=Expr("local.name"),
        **_azure_placement(),
        version="15",
        delegated_subnet_id=Expr(f"{subnet_ids}[0]"),
        private_dns_zone_id=Expr("azurerm_private_dns_zone.postgres.id"),
        public_network_access_enabled=False,
        administrator_login=ref("var", "administrator_login"),
        administrator_password=Expr("random_password.administrator.result"),
        sku_name=ref("var", "sku_name"),
        storage_mb=ref("var", "storage_mb"),
        backup_retention_days=ref("var", "backup_retention_days"),
    )
    ha = server.block("dynamic", "high_availability")
    ha.attribute("for_each", Expr("var.high_availability ? [1] : []"))
    ha.block("content").attribute("mode", "ZoneRedundant")
    server.attributes(
        tags=ref("var", "tags"),
        depends_on=[Expr("azurerm_private_dns_zone_virtual_network_link.postgres")],
    )

    doc.block("resource", "azurerm_postgresql_flexible_server_database", "main").attributes(
        name=ref("var", "database_name"),
        server_id=Expr("azurerm_postgresql_flexible_server.main.id"),
        charset="UTF8",
        collation="en_US.utf8",
    )

    doc.block("resource", "azurerm_key_vault", "main").attributes(
        name=Expr("local.vault_name"),
        **_azure_placement(),
        tenant_id=Expr("data.azurerm_client_config.current.tenant_id"),
        sku_name="standard",
        purge_protection_enabled=ref("var", "deletion_protection"),
        enable_rbac_authorization=True,
        tags=ref("var", "tags"),
    )
    doc.block("resource", "azurerm_key_vault_secret", "database_password").attributes(
        name="database-password",
        value=Expr("random_password.administrator.result"),
        key_vault_id=Expr("azurerm_key_vault.main.id"),
    )

    out = partial(_output_name, names, "database")
    return TerraformModule(
        provider="azure",
        component="database",
        main=doc,
        variables=_common_variables("azure") + [
            _input_variable(names, "database", "network_id"),
            _input_variable(names, "database", "subnet_ids"),
            Variable("database_name", "string", "Name of the application database"),
            Variable("administrator_login", "string", "Administrator user name", "app_admin"),
            Variable("sku_name", "string", "Flexible Server SKU", "GP_Standard_D2s_v3"),
            Variable("storage_mb", "number", "Storage size in MiB", 32768),
            Variable("backup_retention_days", "number", "Days to keep backups", 7),
            Variable("high_availability", "bool", "Enable zone-redundant HA", False),
            Variable("deletion_protection", "bool", "Enable Key Vault purge protection", False),
        ],
        outputs=[
            Output(out("database_endpoint"), Expr("azurerm_postgresql_flexible_server.main.fqdn"),
                   "FQDN of the Flexible Server"),
            Output(out("database_secret_id"), Expr("azurerm_key_vault_secret.database_password.id"),
                   "Key Vault secret holding the administrator password"),
        ],
        required_providers=("random",),
    )


def azure_cache(names: NameRegistry) -> TerraformModule:
    subnet_ids = _input(names, "cache", "subnet_ids")
    doc = _document()

    doc.block("resource", "azurerm_redis_cache", "main").attributes(
        name=Expr("local.name"),
        **_azure_placement(),
        capacity=ref("var", "capacity"),
        family=Expr('var.high_availability ? "P" : "C"'),
        sku_name=Expr('var.high_availability ? "Premium" : "Standard"'),
        minimum_tls_version="1.2",
        non_ssl_port_enabled=False,
        public_network_access_enabled=False,
        redis_version="6",
        tags=ref("var", "tags"),
    )

    endpoint = doc.block("resource", "azurerm_private_endpoint", "cache")
    endpoint.attributes(
        name="${local.name}-redis",
        **_azure_placement(),
        subnet_id=Expr(f"{subnet_ids}[0]"),
    )
    endpoint.block("private_service_connection").attributes(
        name="${local.name}-redis",
        private_connection_resource_id=Expr("azurerm_redis_cache.main.id"),
        is_manual_connection=False,
        subresource_names=["redisCache"],
    )
    endpoint.attribute("tags", ref("var", "tags"))

    return TerraformModule(
        provider="azure",
        component="cache",
        main=doc,
        variables=_common_variables("azure") + [
            _input_variable(names, "cache", "subnet_ids"),
            Variable("capacity", "number", "Redis cache size within its family", 1),
            Variable("high_availability", "bool", "Use the Premium tier", False),
        ],
        outputs=[
            Output(_output_name(names, "cache", "cache_endpoint"),
                   Expr("azurerm_redis_cache.main.hostname"), "Host name of the Redis cache"),
        ],
    )


MODULE_BUILDERS: dict[tuple[str, str], Callable[[NameRegistry], TerraformModule]] = {
    ("aws", "network"): aws_network,
    ("aws", "kubernetes"): aws_kubernetes,
    ("aws", "database"): aws_database,
    ("aws", "cache"): aws_cache,
    ("gcp", "network"): gcp_network,
    ("gcp", "kubernetes"): gcp_kubernetes,
    ("gcp", "database"): gcp_database,
    ("gcp", "cache"): gcp_cache,
    ("azure", "network"): azure_network,
    ("azure", "kubernetes"): azure_kubernetes,
    ("azure", "database"): azure_database,
    ("azure", "cache"): azure_cache,
}


def build_module(names: NameRegistry, provider: str, component: str) -> TerraformModule:
    return MODULE_BUILDERS[(provider, component)](names)
