"""Typed view of a Service object's port declarations."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictStr


class ServicePort(BaseModel):
    """A single entry of ``spec.ports``."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    name: StrictStr | None = None
    port: StrictInt
    protocol: StrictStr = "TCP"
    node_port: StrictInt | None = Field(default=None, alias="nodePort")


class ServiceSpec(BaseModel):
    """The part of a Service ``spec`` the port extractor reads."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    type: StrictStr = "ClusterIP"
    ports: list[ServicePort] = Field(default_factory=list)

    @property
    def node_ports(self) -> list[int]:
        """Node ports in declaration order, skipping ports without one."""
        return [p.node_port for p in self.ports if p.node_port is not None]
