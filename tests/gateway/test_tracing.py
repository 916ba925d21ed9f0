"""Tests for RequestTracer."""

import json

from parley.gateway.tracing import RequestTracer


class TestTraceIds:
    def test_format(self):
        tracer = RequestTracer()

        trace_id = tracer.generate_trace_id(
            {"messages": [{"role": "user", "content": "Please write a poem"}]}
        )

        counter, timestamp, msgs, context = trace_id.split("_", 3)
        assert counter == "00001"
        assert len(timestamp) == 6
        assert msgs == "1msgs"
        assert context == "Please_write_a"

    def test_counter_increments(self):
        tracer = RequestTracer()

        first = tracer.generate_trace_id({"messages": []})
        second = tracer.generate_trace_id({"messages": []})

        assert first.startswith("00001_")
        assert second.startswith("00002_")

    def test_context_from_text_block(self):
        tracer = RequestTracer()

        trace_id = tracer.generate_trace_id(
            {"messages": [{"role": "user", "content": [{"type": "text", "text": "Hello there!"}]}]}
        )

        assert trace_id.endswith("_1msgs_Hello_there")

    def test_garbage_body(self):
        assert RequestTracer().generate_trace_id(["not", "a", "dict"]).endswith("_0msgs_empty")


class TestSaveDebug:
    def test_disabled_without_debug_dir(self, tmp_path):
        tracer = RequestTracer()

        tracer.save_debug("t1", "x.json", {"a": 1})

        assert tracer.debug_dir is None

    def test_writes_json(self, tmp_path):
        tracer = RequestTracer(debug_dir=tmp_path)

        tracer.save_debug("t1", "1_request.json", {"a": 1})

        path = tracer.debug_dir / "t1" / "1_request.json"
        assert json.loads(path.read_text()) == {"a": 1}
        assert path.is_relative_to(tmp_path / "logs")
