"""Tests for sheetflow.dispatch: queued batches/chunks, jobs and RabbitMQ adapters."""

import os
from unittest.mock import MagicMock

import pytest
from pydantic import ValidationError

from sheetflow.dispatch import ImportJob, ImportUnit, InlineDispatcher, contract_reference, load_contract
from sheetflow.dispatch.rabbitmq import ConsumedMessage, RabbitMQDispatcher, RabbitMQWorker, UnitMessage
from sheetflow.exceptions import ConfigurationException, ProcessingException
from tests.mocks import (
    PEOPLE,
    PEOPLE_HEADER,
    PersonRules,
    QueuedChunkedImport,
    QueuedImport,
    RecordingDispatcher,
    ShippedImport,
    TaggedImport,
    fail_on,
    make_processor,
    temp_files,
    write_csv,
)


@pytest.fixture
def people_csv(tmp_path):
    return write_csv(tmp_path / "people.csv", PEOPLE_HEADER, PEOPLE)


# =====================================================================
#   Queued batches
# =====================================================================


class TestQueuedBatches:
    def test_batches_submitted_not_processed(self, tmp_path, people_csv):
        dispatcher = RecordingDispatcher()
        processor = make_processor(tmp_path, dispatcher=dispatcher)
        contract = QueuedImport(batch_size=2)

        stats = processor.import_file(contract, people_csv)

        units = dispatcher.queued()
        assert [u.kind for u in units] == ["batch"] * 3
        assert [len(u.batch) for u in units] == [2, 2, 1]
        assert [u.row_numbers for u in units] == [[1, 2], [3, 4], [5]]
        assert contract.batches == []
        assert stats.total_rows == 5
        assert stats.processed_rows == 0
        assert contract.events == [("start", 5), ("complete",)]

    def test_default_queue_name_and_budgets(self, tmp_path, people_csv):
        dispatcher = RecordingDispatcher()
        processor = make_processor(tmp_path, dispatcher=dispatcher, queue="imports")

        processor.import_file(QueuedImport(), people_csv)

        unit = dispatcher.queued()[0]
        assert set(dispatcher.queue_names) == {"imports"}
        assert (unit.timeout, unit.memory, unit.tries) == (120, 256, 1)

    def test_contract_queue_name_wins(self, tmp_path, people_csv):
        dispatcher = RecordingDispatcher()
        processor = make_processor(tmp_path, dispatcher=dispatcher)

        processor.import_file(QueuedImport(queue="priority"), people_csv)

        assert set(dispatcher.queue_names) == {"priority"}

    def test_run_pending_processes_in_order(self, tmp_path, people_csv):
        dispatcher = InlineDispatcher()
        processor = make_processor(tmp_path, dispatcher=dispatcher)
        contract = QueuedImport(batch_size=2)
        processor.import_file(contract, people_csv)

        results = dispatcher.run_pending(processor)

        assert all(r.success for r in results)
        assert [r.stats.processed_rows for r in results] == [2, 2, 1]
        assert [r["name"] for r in contract.records] == [p[0] for p in PEOPLE]
        assert not dispatcher.pending

    def test_queued_batch_progress_uses_batch_total(self, tmp_path, people_csv):
        dispatcher = InlineDispatcher()
        processor = make_processor(tmp_path, dispatcher=dispatcher)
        contract = QueuedImport(batch_size=2)
        processor.import_file(contract, people_csv)
        contract.events.clear()

        dispatcher.run_pending(processor)

        assert contract.events == [("progress", 2, 2), ("progress", 2, 2), ("progress", 1, 1)]

    def test_failed_unit_reported(self, tmp_path, people_csv):
        dispatcher = InlineDispatcher()
        processor = make_processor(tmp_path, dispatcher=dispatcher)
        contract = QueuedImport(batch_size=2, process_fn=fail_on("Caio"))
        processor.import_file(contract, people_csv)

        results = dispatcher.run_pending(processor)

        assert [r.success for r in results] == [True, False, True]
        assert isinstance(results[1].error, ProcessingException)
        assert isinstance(results[1].error.cause, ValueError)

    def test_process_queued_batch_without_row_numbers(self, tmp_path):
        processor = make_processor(tmp_path)
        contract = QueuedImport(batch_size=10)

        stats = processor.process_queued_batch(contract, [{"name": "Ana"}, {"name": "Bia"}])

        assert stats.total_rows == 2
        assert stats.processed_rows == 2
        assert contract.batches == [[{"name": "Ana"}, {"name": "Bia"}]]

    def test_serialized_units_run_on_rebuilt_contract(self, tmp_path, people_csv):
        ShippedImport.received.clear()
        dispatcher = InlineDispatcher(serialize=True)
        processor = make_processor(tmp_path, dispatcher=dispatcher)
        processor.import_file(ShippedImport(queue="priority"), people_csv)

        results = dispatcher.run_pending(processor)

        assert [r.success for r in results] == [True, True, True]
        assert [len(b) for b in ShippedImport.received] == [2, 2, 1]
        assert ShippedImport.received[0][0] == {"name": "Ana", "email": "ana@example.com", "age": 31}

    def test_unserialized_units_keep_records(self, tmp_path, people_csv):
        ShippedImport.received.clear()
        dispatcher = InlineDispatcher()
        processor = make_processor(tmp_path, dispatcher=dispatcher)
        processor.import_file(ShippedImport(), people_csv)

        dispatcher.run_pending(processor)

        assert isinstance(ShippedImport.received[0][0], PersonRules)


# =====================================================================
#   Queued chunks
# =====================================================================


class TestQueuedChunks:
    def test_chunks_submitted_with_row_offsets(self, tmp_path, people_csv):
        dispatcher = RecordingDispatcher()
        processor = make_processor(tmp_path, dispatcher=dispatcher)
        contract = QueuedChunkedImport(chunk_rows=2)

        stats = processor.import_file(contract, people_csv)

        units = dispatcher.queued()
        assert [u.kind for u in units] == ["chunk"] * 3
        assert [u.chunk_number for u in units] == [1, 2, 3]
        assert [u.row_offset for u in units] == [0, 2, 4]
        assert all(os.path.isfile(u.chunk_file_path) for u in units)
        assert contract.rows == []
        assert stats.processed_rows == 0

    def test_run_pending_imports_chunks_and_discards_them(self, tmp_path, people_csv):
        dispatcher = InlineDispatcher()
        processor = make_processor(tmp_path, dispatcher=dispatcher)
        contract = QueuedChunkedImport(chunk_rows=2)
        processor.import_file(contract, people_csv)

        results = dispatcher.run_pending(processor)

        assert all(r.success for r in results)
        assert [n for n, _ in contract.rows] == [1, 2, 3, 4, 5]
        assert sum(r.stats.processed_rows for r in results) == 5
        assert temp_files(processor) == []
        assert not dispatcher.pending

    def test_failed_chunk_still_discarded(self, tmp_path, people_csv):
        dispatcher = InlineDispatcher()
        processor = make_processor(tmp_path, dispatcher=dispatcher)
        contract = QueuedChunkedImport(chunk_rows=2, process_fn=fail_on("Ana"))
        processor.import_file(contract, people_csv)

        results = dispatcher.run_pending(processor)

        assert [r.success for r in results] == [False, True, True]
        assert temp_files(processor) == []

    def test_remote_chunks(self, tmp_path, people_csv):
        dispatcher = InlineDispatcher()
        processor = make_processor(tmp_path, dispatcher=dispatcher, use_cloud_temp=True)
        contract = QueuedChunkedImport(chunk_rows=2)
        processor.import_file(contract, people_csv)
        keys = [u.chunk_file_path for _, u in dispatcher.pending]

        dispatcher.run_pending(processor)

        assert [n for n, _ in contract.rows] == [1, 2, 3, 4, 5]
        assert not any(processor.file_manager.storage.exists(k) for k in keys)
        assert temp_files(processor) == []


# =====================================================================
#   ImportUnit
# =====================================================================


class TestImportUnit:
    def test_needs_exactly_one_payload(self):
        with pytest.raises(ValidationError):
            ImportUnit(contract=QueuedImport())
        with pytest.raises(ValidationError):
            ImportUnit(contract=QueuedImport(), batch=[1], chunk_file_path="a.csv")

    def test_row_numbers_length_checked(self):
        with pytest.raises(ValidationError):
            ImportUnit(contract=QueuedImport(), batch=[1, 2], row_numbers=[1])

    def test_tries_must_be_positive(self):
        with pytest.raises(ValidationError):
            ImportUnit(contract=QueuedImport(), batch=[1], tries=0)

    def test_message_round_trip_plain_contract(self):
        unit = ImportUnit(contract=QueuedImport(), batch=[{"name": "Ana"}], row_numbers=[7], timeout=60)

        message = unit.to_message()
        rebuilt = ImportUnit.from_message(message)

        assert message["contract"] == "tests.mocks:QueuedImport"
        assert message["kind"] == "batch"
        assert isinstance(rebuilt.contract, QueuedImport)
        assert rebuilt.batch == [{"name": "Ana"}]
        assert rebuilt.row_numbers == [7]
        assert rebuilt.timeout == 60
        assert rebuilt.id == unit.id

    def test_message_carries_pydantic_contract_state(self):
        unit = ImportUnit(contract=TaggedImport(tag="north"), chunk_file_path="temp/run/chunk_1.csv", row_offset=4)

        rebuilt = ImportUnit.from_message(unit.to_message())

        assert rebuilt.contract == TaggedImport(tag="north")
        assert rebuilt.kind == "chunk"
        assert rebuilt.row_offset == 4

    def test_local_contract_class_rejected(self):
        class Local:
            pass

        with pytest.raises(ConfigurationException):
            contract_reference(Local())

    def test_invalid_reference(self):
        with pytest.raises(ConfigurationException):
            load_contract("no-colon-here")


# =====================================================================
#   ImportJob
# =====================================================================


class TestImportJob:
    def test_budgets_exposed(self):
        job = ImportJob(ImportUnit(contract=QueuedImport(), batch=[1], timeout=30, memory=64))

        assert (job.tries, job.timeout, job.memory) == (1, 30, 64)

    def test_handle_batch_unit(self, tmp_path):
        processor = make_processor(tmp_path)
        contract = QueuedImport()

        stats = ImportJob(ImportUnit(contract=contract, batch=[{"name": "Ana"}], row_numbers=[9])).handle(processor)

        assert stats.processed_rows == 1
        assert contract.records == [{"name": "Ana"}]

    def test_failed_discards_chunk(self, tmp_path):
        processor = make_processor(tmp_path)
        chunk = write_csv(tmp_path / "chunk_1.csv", PEOPLE_HEADER, PEOPLE[:1])
        job = ImportJob(ImportUnit(contract=QueuedImport(), chunk_file_path=chunk))

        job.failed(processor, RuntimeError("worker died"))

        assert not os.path.exists(chunk)


# =====================================================================
#   RabbitMQ adapters
# =====================================================================


class TestRabbitMQDispatcher:
    def test_submit_publishes_unit_message(self):
        service = MagicMock()
        dispatcher = RabbitMQDispatcher(service)
        unit = ImportUnit(contract=QueuedImport(), batch=[{"name": "Ana"}], timeout=90, memory=128)

        dispatcher.submit(unit, "imports")

        message = service.publish.call_args.args[0]
        assert isinstance(message, UnitMessage)
        assert message.id == unit.id
        assert message.queue_name == "imports"
        assert (message.timeout, message.memory, message.tries) == (90, 128, 1)
        assert message.body == unit.to_message()

    def test_close_closes_service(self):
        service = MagicMock()
        RabbitMQDispatcher(service).close()
        service.close.assert_called_once()


class TestRabbitMQWorker:
    def make_worker(self, tmp_path, messages):
        service = MagicMock()
        service.client.queue_name = "data-processor"
        service.consume.return_value = messages
        return RabbitMQWorker(make_processor(tmp_path), service), service

    def test_success_acks(self, tmp_path):
        unit = ImportUnit(contract=QueuedImport(), batch=[{"name": "Ana"}])
        worker, service = self.make_worker(tmp_path, [ConsumedMessage(data=unit.to_message(), delivery_tag=1)])

        assert worker.run_once() == [True]
        service.ack.assert_called_once_with(1)
        service.nack.assert_not_called()

    def test_failure_nacks_without_requeue(self, tmp_path):
        unit = ImportUnit(contract=QueuedImport(), chunk_file_path=str(tmp_path / "gone" / "chunk_1.csv"))
        worker, service = self.make_worker(tmp_path, [ConsumedMessage(data=unit.to_message(), delivery_tag=2)])

        assert worker.run_once() == [False]
        service.nack.assert_called_once_with(2, requeue=False)
        service.ack.assert_not_called()

    def test_unreadable_message_rejected(self, tmp_path):
        worker, service = self.make_worker(tmp_path, [ConsumedMessage(data={"contract": "nope"}, delivery_tag=3)])

        assert worker.run_once() == [False]
        service.nack.assert_called_once_with(3, requeue=False)

    def test_run_stops_after_max_messages(self, tmp_path):
        unit = ImportUnit(contract=QueuedImport(), batch=[{"name": "Ana"}])
        worker, service = self.make_worker(tmp_path, [ConsumedMessage(data=unit.to_message(), delivery_tag=4)])

        assert worker.run(max_messages=3) == 3
        assert service.ack.call_count == 3
