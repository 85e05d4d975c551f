# app.py
from concurrent.futures import Future
from dataclasses import dataclass
from typing import Annotated, Callable, List
import time

from sqs_declarative_client import (
    MessageBody,
    MessageGroupId,
    MessageProcessor,
    QueueName,
    SqsClientProxyFactory,
    SqsMessage,
    SqsService,
    SqsSettings,
    receive_messages,
    send_batch,
    send_message,
    sqs_client,
    start_polling,
)


@dataclass
class Order:
    id: int
    sku: str
    qty: int = 1


# ------------------------------------------------------------------
# Declared client: one method per queue operation
# ------------------------------------------------------------------
@sqs_client(
    "orders-client",
    # queue_prefix="dev-",    # prepended to every resolved queue name
    auto_create_queues=True,  # create missing queues on first use
    default_queue_attributes=["VisibilityTimeout=60", "ReceiveMessageWaitTimeSeconds=20"],
)
class OrderQueues:
    @send_message("orders")
    def publish(self, order: Annotated[Order, MessageBody()]) -> str: ...

    @send_message("orders.fifo", fifo=True)
    def publish_in_sequence(
        self,
        order: Annotated[Order, MessageBody()],
        customer: Annotated[str, MessageGroupId()],
    ) -> str: ...

    @send_message(delay_seconds=60)
    def remind(self, queue: Annotated[str, QueueName()], text: Annotated[str, MessageBody(json=False)]) -> Future: ...

    @send_batch("orders")
    def publish_many(self, orders: List[Order]) -> List[str]: ...

    @receive_messages("orders", auto_delete=True, max_messages=10)
    def drain(self, processor: Callable[[SqsMessage], None]) -> None: ...

    @start_polling("orders")  # long-poll wait comes from SQS_WAIT_TIME
    def listen(self, processor: Annotated[Callable, MessageProcessor()]) -> bool: ...


def handle_order(msg: SqsMessage) -> None:
    """
    Raise → message is kept (redelivered after its visibility timeout)
    Return → message is deleted
    """
    order = msg.deserialize(Order)
    print(f"[INFO] Processing order {order.id} ({order.sku} x{order.qty}), receive #{msg.receive_count}")
    time.sleep(0.5)  # simulate some work


# ------------------------------------------------------------------
# Entry point
# ------------------------------------------------------------------
if __name__ == "__main__":
    # SQS_ENDPOINT_URL / SQS_QUEUE_URL_PREFIX point this at LocalStack
    settings = SqsSettings.from_env()
    with SqsService(settings=settings) as service:
        queues = SqsClientProxyFactory(service).create_proxy(OrderQueues)

        print(f"[BOOT] {queues} ready")
        queues.publish(Order(1, "SKU-1"))
        queues.publish_many([Order(i, f"SKU-{i}") for i in range(2, 25)])

        queues.listen(handle_order)
        try:
            while service.is_polling("orders"):
                time.sleep(1)
        except KeyboardInterrupt:
            print("[STOP] Shutting down...")
