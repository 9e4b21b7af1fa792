"""
Tests for topology descriptions and settings.

Run with: python -m pytest tests/test_topology.py -v
"""

import json

import pytest

from shardrouter.config.topology import (
    DatabaseConfig,
    PartitionConfig,
    TopologyConfig,
    default_topology,
    load_topology,
)
from shardrouter.errors import ConfigurationError
from tests.conftest import make_topology


def _db(port: int) -> DatabaseConfig:
    return DatabaseConfig("localhost", port, "postgres", "postgres", "shard")


def _topology_dict() -> dict:
    return {
        "partitions": [
            {
                "partition_id": pid,
                "primary": {"host": "db", "port": 5440 + pid, "user": "u",
                            "password": "p", "database": f"shard{pid}"},
                "replicas": [{"host": "db-r", "port": 6440 + pid, "user": "u",
                              "password": "p", "database": f"shard{pid}"}],
            }
            for pid in range(2)
        ]
    }


class TestValidate:
    """Test TopologyConfig.validate()."""

    def test_valid_topology(self):
        """Test that a dense 0..N-1 topology validates."""
        make_topology(4).validate()

    def test_empty_topology_rejected(self):
        """Test that a topology with no partitions is rejected."""
        with pytest.raises(ConfigurationError):
            TopologyConfig().validate()

    def test_gap_rejected(self):
        """Test that a gap in partition ids is rejected."""
        topo = TopologyConfig((PartitionConfig(0, _db(1)), PartitionConfig(2, _db(2))))
        with pytest.raises(ConfigurationError, match="0..1"):
            topo.validate()

    def test_duplicate_rejected(self):
        """Test that duplicate partition ids are rejected."""
        topo = TopologyConfig((PartitionConfig(0, _db(1)), PartitionConfig(0, _db(2))))
        with pytest.raises(ConfigurationError, match="duplicate"):
            topo.validate()

    def test_not_starting_at_zero_rejected(self):
        """Test that ids must start at 0."""
        topo = TopologyConfig((PartitionConfig(1, _db(1)), PartitionConfig(2, _db(2))))
        with pytest.raises(ConfigurationError):
            topo.validate()

    def test_non_integer_id_rejected(self):
        """Test that string ids are rejected."""
        topo = TopologyConfig((PartitionConfig("0", _db(1)),))
        with pytest.raises(ConfigurationError):
            topo.validate()

    def test_missing_primary_rejected(self):
        """Test that every partition needs a primary."""
        topo = TopologyConfig((PartitionConfig(0, None),))
        with pytest.raises(ConfigurationError):
            topo.validate()

    def test_unordered_ids_are_valid_and_ordered(self):
        """Test that declaration order does not matter."""
        topo = TopologyConfig((PartitionConfig(1, _db(2)), PartitionConfig(0, _db(1))))
        topo.validate()
        assert [p.partition_id for p in topo.ordered()] == [0, 1]

    def test_configuration_error_is_value_error(self):
        """Test that ConfigurationError is a ValueError."""
        with pytest.raises(ValueError):
            TopologyConfig().validate()


class TestFromDict:
    """Test building topologies from parsed JSON."""

    def test_round_trip_fields(self):
        """Test that from_dict keeps every field."""
        topo = TopologyConfig.from_dict(_topology_dict())
        assert topo.num_partitions == 2
        assert topo.partitions[1].primary == DatabaseConfig("db", 5441, "u", "p", "shard1")
        assert topo.partitions[1].replicas == (DatabaseConfig("db-r", 6441, "u", "p", "shard1"),)

    def test_replicas_optional(self):
        """Test that a partition may omit its replicas."""
        data = _topology_dict()
        del data["partitions"][0]["replicas"]
        topo = TopologyConfig.from_dict(data)
        assert topo.partitions[0].replicas == ()

    def test_missing_partitions_key(self):
        """Test that a document without partitions is rejected."""
        with pytest.raises(ConfigurationError):
            TopologyConfig.from_dict({"shards": []})

    def test_missing_database_field(self):
        """Test that a server entry missing a field is rejected."""
        data = _topology_dict()
        del data["partitions"][0]["primary"]["password"]
        with pytest.raises(ConfigurationError, match="password"):
            TopologyConfig.from_dict(data)

    def test_bad_port(self):
        """Test that a non-numeric port is rejected."""
        data = _topology_dict()
        data["partitions"][1]["replicas"][0]["port"] = "not-a-port"
        with pytest.raises(ConfigurationError, match="port"):
            TopologyConfig.from_dict(data)


class TestLoadTopology:
    """Test load_topology()."""

    def test_load_file(self, tmp_path):
        """Test loading a topology from a JSON file."""
        path = tmp_path / "topology.json"
        path.write_text(json.dumps(_topology_dict()))
        topo = load_topology(path)
        assert topo.num_partitions == 2

    def test_missing_file(self, tmp_path):
        """Test that a missing file raises ConfigurationError."""
        with pytest.raises(ConfigurationError):
            load_topology(tmp_path / "nope.json")

    def test_invalid_json(self, tmp_path):
        """Test that malformed JSON raises ConfigurationError."""
        path = tmp_path / "topology.json"
        path.write_text("{not json")
        with pytest.raises(ConfigurationError):
            load_topology(path)

    def test_invalid_layout_is_validated(self, tmp_path):
        """Test that a loaded topology is validated."""
        data = _topology_dict()
        data["partitions"][1]["partition_id"] = 5
        path = tmp_path / "topology.json"
        path.write_text(json.dumps(data))
        with pytest.raises(ConfigurationError):
            load_topology(path)


class TestDefaults:
    """Test the built-in topology."""

    def test_default_topology_layout(self):
        """Test the built-in three-partition layout."""
        topo = default_topology()
        topo.validate()
        assert topo.num_partitions == 3
        ports = [(p.primary.port, p.replicas[0].port) for p in topo.partitions]
        assert ports == [(5440, 5441), (5442, 5443), (5444, 5445)]
        assert [p.primary.database for p in topo.partitions] == ["shard0", "shard1", "shard2"]

    def test_connection_string(self):
        """Test the libpq connection string."""
        cfg = DatabaseConfig("localhost", 5440, "postgres", "secret", "shard0")
        assert cfg.connection_string() == (
            "host=localhost port=5440 user=postgres password=secret "
            "dbname=shard0 sslmode=disable"
        )
