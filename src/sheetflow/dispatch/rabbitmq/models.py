from typing import Optional

from pydantic import BaseModel, Field


class RabbitmqClient(BaseModel):
    host: str = Field(default="localhost", description="The RabbitMQ host")
    port: int = Field(default=5672, description="The RabbitMQ port")
    username: str = Field(default="guest", description="The RabbitMQ username")
    password: str = Field(default="guest", description="The RabbitMQ password")
    queue_name: str = Field(default="data-processor", description="Default queue for import units")
    prefetch_count: int = Field(default=1, description="Unacked units a worker may hold")
    virtual_host: Optional[str] = Field(default="/", description="The RabbitMQ vhost")
    connection_attempts: int = Field(default=3, description="The RabbitMQ connection retry attempts")
    socket_timeout: float = Field(default=10, description="Socket timeout in seconds")
    heartbeat: Optional[float] = Field(default=600, description="Heartbeat interval in seconds")
    blocked_connection_timeout: Optional[float] = Field(
        default=None, description="Timeout when connection is blocked by the broker"
    )


class UnitMessage(BaseModel):
    """One serialized ImportUnit on its way to a queue."""

    id: str = Field(description="Unit id, sent as correlation_id")
    queue_name: str = Field(description="The RabbitMQ queue name")
    body: dict = Field(description="ImportUnit.to_message() payload")
    timeout: int = Field(default=3600, description="Advisory wall-clock budget in seconds")
    memory: int = Field(default=512, description="Advisory memory budget in MB")
    tries: int = Field(default=1, description="Attempts allowed for the unit")
    delivery_mode: int = Field(default=2, description="2 for persistent messages")
    content_type: str = Field(default="application/json", description="Content type of the message")


class ConsumedMessage(BaseModel):
    data: Optional[dict] = None
    routing_key: Optional[str] = None
    delivery_tag: int
    headers: dict = Field(default_factory=dict)
