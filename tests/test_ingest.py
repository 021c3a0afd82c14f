import pytest

from helpers import make_cfg
from mixpipe.conf import PipelineConf
from mixpipe.errors import ConfigurationError, IngestError
from mixpipe.stages.ingest import CSVIngester, MemoryIngester, construct_ingester


def _csv_conf(path, **ingest):
    cfg = make_cfg(rows=[])
    cfg["ingest"] = {
        "loader": "csv",
        "path": str(path),
        "metrics": ["power", "temp"],
        "attributes": ["device"],
        **ingest,
    }
    return PipelineConf.from_dict(cfg)


def test_csv_ingest_builds_data_in_row_order(tmp_path):
    path = tmp_path / "in.csv"
    path.write_text("power,temp,device,extra\n1.5,2,a,z\n3,4.25,007,z\n", encoding="utf-8")
    ingester = construct_ingester(_csv_conf(path))
    assert isinstance(ingester, CSVIngester)
    data = ingester.get_stream().drain()
    assert [d.datum_id for d in data] == [0, 1]
    assert data[0].metrics == (1.5, 2.0)
    # attribute values are kept as text, leading zeros included
    assert data[1].attributes == (("device", "007"),)


def test_csv_ingest_drops_rows_with_bad_metrics(tmp_path):
    path = tmp_path / "in.csv"
    path.write_text("power,temp,device\n1,2,a\n,3,b\noops,4,c\n5,6,d\n", encoding="utf-8")
    data = construct_ingester(_csv_conf(path)).get_stream().drain()
    assert [d.attributes[0][1] for d in data] == ["a", "d"]
    assert [d.datum_id for d in data] == [0, 3]


def test_missing_attribute_values_are_omitted(tmp_path):
    path = tmp_path / "in.csv"
    path.write_text("power,temp,device,firmware\n1,2,,v1\n3,4,b,\n", encoding="utf-8")
    data = construct_ingester(_csv_conf(path, attributes=["device", "firmware"])).get_stream().drain()
    assert data[0].attributes == (("firmware", "v1"),)
    assert data[1].attributes == (("device", "b"),)

    rows = [{"power": 1.0, "temp": 2.0, "device": None, "firmware": "v1", "region": "eu"}]
    data = construct_ingester(PipelineConf.from_dict(make_cfg(rows=rows))).get_stream().drain()
    assert data[0].attributes == (("firmware", "v1"), ("region", "eu"))


def test_csv_missing_file_and_columns(tmp_path):
    with pytest.raises(IngestError):
        construct_ingester(_csv_conf(tmp_path / "nope.csv")).get_stream()

    path = tmp_path / "in.csv"
    path.write_text("power,device\n1,a\n", encoding="utf-8")
    with pytest.raises(IngestError) as exc:
        construct_ingester(_csv_conf(path)).get_stream()
    assert "temp" in str(exc.value)


def test_empty_csv_yields_no_data(tmp_path):
    path = tmp_path / "empty.csv"
    path.write_text("", encoding="utf-8")
    assert construct_ingester(_csv_conf(path)).get_stream().drain() == []

    header_only = tmp_path / "header.csv"
    header_only.write_text("power,temp,device\n", encoding="utf-8")
    assert construct_ingester(_csv_conf(header_only)).get_stream().drain() == []


def test_memory_ingester(rows):
    conf = PipelineConf.from_dict(make_cfg(rows=rows[:3]))
    ingester = construct_ingester(conf)
    assert isinstance(ingester, MemoryIngester)
    stream = ingester.get_stream()
    assert stream.remaining() == 3
    data = stream.drain()
    assert data[0].attributes[0] == ("device", "b")
    assert stream.drain() == []


def test_unknown_loader_and_missing_path():
    cfg = make_cfg(rows=[])
    cfg["ingest"]["loader"] = "kafka"
    with pytest.raises(ConfigurationError):
        construct_ingester(PipelineConf.from_dict(cfg))

    cfg["ingest"]["loader"] = "csv"
    with pytest.raises(ConfigurationError):
        construct_ingester(PipelineConf.from_dict(cfg))
