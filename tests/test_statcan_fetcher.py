import io
import zipfile

import numpy as np
import pandas as pd
import pytest
import requests

from fetchers.statcan_wds import (
    STATCAN_WDS_BASE,
    CategoryNotFoundError,
    StatCanFetchError,
    dimension_columns,
    fetch_statcan_table,
    load_price_series,
    select_category,
    table_id_to_product_id,
)
from fpi_forecaster_src.data_utils import load_fpi_series, load_series_csv, save_series_csv

ZIP_URL = "https://www150.statcan.gc.ca/n1/tbl/csv/18100004-eng.zip"


def build_table(n_months=36, language="en"):
    """CPI-like table: two products x two geographies, WDS column layout."""
    months = pd.period_range("2018-01", periods=n_months, freq="M").strftime("%Y-%m")
    rows = []
    for geo, geo_scale in [("Canada", 1.0), ("Ontario", 1.02)]:
        for product, base in [("All-items", 130.0), ("Food", 140.0)]:
            for i, m in enumerate(months):
                rows.append([m, geo, "2016A000011124", product, "2002=100", 17, "units", 0,
                             "v41690973", "1.2", round(base * geo_scale * (1.002 ** i), 1), "", "", "", 1])
    cols_en = ["REF_DATE", "GEO", "DGUID", "Products and product groups", "UOM", "UOM_ID",
               "SCALAR_FACTOR", "SCALAR_ID", "VECTOR", "COORDINATE", "VALUE", "STATUS",
               "SYMBOL", "TERMINATED", "DECIMALS"]
    cols_fr = ["PÉRIODE DE RÉFÉRENCE", "GÉO", "DGUID", "Produits et groupes de produits", "UNITÉ DE MESURE",
               "IDENTIFICATEUR D'UNITÉ DE MESURE", "FACTEUR SCALAIRE", "IDENTIFICATEUR SCALAIRE", "VECTEUR",
               "COORDONNÉES", "VALEUR", "STATUT", "SYMBOLE", "TERMINÉ", "DÉCIMALES"]
    df = pd.DataFrame(rows, columns=cols_en if language == "en" else cols_fr)
    if language == "fr":
        df["Produits et groupes de produits"] = df["Produits et groupes de produits"].replace(
            {"All-items": "Ensemble", "Food": "Aliments"})
    return df


def build_zip(df, product_id="18100004"):
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as zf:
        zf.writestr(f"{product_id}.csv", df.to_csv(index=False))
        zf.writestr(f"{product_id}_MetaData.csv", "Cube Title,Consumer Price Index\n")
    return buf.getvalue()


class FakeResponse:
    def __init__(self, json_data=None, content=b"", status_code=200):
        self._json = json_data
        self.content = content
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error")

    def json(self):
        if self._json is None:
            raise ValueError("No JSON object could be decoded")
        return self._json


class FakeSession:
    """Serves the WDS metadata call and the ZIP download from memory."""

    def __init__(self, payload, status="SUCCESS", meta_status_code=200, zip_status_code=200):
        self.payload = payload
        self.status = status
        self.meta_status_code = meta_status_code
        self.zip_status_code = zip_status_code
        self.calls = []

    def get(self, url, headers=None, timeout=None):
        self.calls.append((url, timeout))
        if "getFullTableDownloadCSV" in url:
            return FakeResponse({"status": self.status, "object": ZIP_URL}, status_code=self.meta_status_code)
        return FakeResponse(content=self.payload, status_code=self.zip_status_code)


def test_table_id_to_product_id():
    assert table_id_to_product_id("18-10-0004-01") == "18100004"
    assert table_id_to_product_id("18100004") == "18100004"
    with pytest.raises(ValueError):
        table_id_to_product_id("18-10")


def test_fetch_statcan_table_requests_wds_then_archive():
    session = FakeSession(build_zip(build_table()))
    df = fetch_statcan_table("18-10-0004-01", language="en", session=session, timeout=5)

    assert session.calls[0] == (f"{STATCAN_WDS_BASE}/getFullTableDownloadCSV/18100004/en", 5)
    assert session.calls[1] == (ZIP_URL, 5)
    assert len(df) == 4 * 36
    assert df.attrs["product_id"] == "18100004"
    assert dimension_columns(df) == ["Products and product groups"]


def test_select_category_filters_product_and_geo():
    df = build_table()
    s = select_category(df, category="food", geo="Canada")

    assert s.name == "food"
    assert len(s) == 36
    assert s.index[0] == pd.Timestamp("2018-01-01")
    assert s.iloc[0] == pytest.approx(140.0)
    assert s.index.is_monotonic_increasing


def test_select_category_french_table():
    df = build_table(language="fr")
    s = select_category(df, category="Aliments", geo="Canada", language="fr")

    assert len(s) == 36
    assert s.iloc[0] == pytest.approx(140.0)


def test_select_category_missing_category_or_geo():
    df = build_table()
    with pytest.raises(CategoryNotFoundError, match="not found"):
        select_category(df, category="Gasoline", geo="Canada")
    with pytest.raises(CategoryNotFoundError, match="geography"):
        select_category(df, category="Food", geo="Yukon")


def test_select_category_ambiguous_without_geo():
    with pytest.raises(CategoryNotFoundError, match="several series"):
        select_category(build_table(), category="Food", geo=None)


def test_select_category_no_numeric_values():
    df = build_table()
    df.loc[df["Products and product groups"] == "Food", "VALUE"] = np.nan
    with pytest.raises(CategoryNotFoundError, match="no numeric"):
        select_category(df, category="Food", geo="Canada")


def test_category_error_is_lookup_error_and_fetch_error_is_runtime_error():
    assert issubclass(CategoryNotFoundError, LookupError)
    assert issubclass(StatCanFetchError, RuntimeError)


@pytest.mark.parametrize("session", [
    FakeSession(b"", status="FAILED"),
    FakeSession(b"", meta_status_code=503),
    FakeSession(b"", zip_status_code=404),
    FakeSession(b"this is not a zip"),
])
def test_fetch_failures_raise_statcan_fetch_error(session):
    with pytest.raises(StatCanFetchError):
        fetch_statcan_table("18-10-0004-01", session=session)


def test_fetch_archive_without_data_csv():
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as zf:
        zf.writestr("18100004_MetaData.csv", "Cube Title\n")
    with pytest.raises(StatCanFetchError, match="no data CSV"):
        fetch_statcan_table("18-10-0004-01", session=FakeSession(buf.getvalue()))


def test_fetch_rejects_unknown_language():
    with pytest.raises(ValueError):
        fetch_statcan_table("18-10-0004-01", language="de", session=FakeSession(b""))


def test_load_price_series_end_to_end():
    session = FakeSession(build_zip(build_table()))
    s = load_price_series("18-10-0004-01", category="Food", geo="Ontario", session=session)

    assert len(s) == 36
    assert s.iloc[0] == pytest.approx(round(140.0 * 1.02, 1))
    assert s.attrs["product_id"] == "18100004"


def test_load_fpi_series_validates_fingerprints_and_saves(tmp_path):
    session = FakeSession(build_zip(build_table()))
    out_csv = tmp_path / "data" / "food.csv"
    series, fp = load_fpi_series(category="Food", geo="Canada", session=session, save_csv=out_csv)

    assert series.index.freqstr == "MS"
    assert fp.n_obs == 36
    assert fp.source == "Statistics Canada WDS"
    assert fp.date_range == ("2018-01", "2020-12")

    reloaded = load_series_csv(out_csv, name="Food")
    assert np.allclose(reloaded.values, series.values)
    offline, fp_offline = load_fpi_series(category="Food", series_csv=out_csv)
    assert fp_offline.hash == fp.hash
    assert fp_offline.source == str(out_csv)


def test_load_series_csv_errors(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_series_csv(tmp_path / "missing.csv")

    bad = tmp_path / "bad.csv"
    pd.DataFrame({"month": ["2020-01"], "price": [1.0]}).to_csv(bad, index=False)
    with pytest.raises(ValueError, match="'date' and 'value'"):
        load_series_csv(bad)


def test_save_series_csv_format(tmp_path):
    idx = pd.date_range("2020-01-01", periods=3, freq="MS")
    out = tmp_path / "s.csv"
    save_series_csv(pd.Series([1.0, 2.0, 3.0], index=idx), out)

    df = pd.read_csv(out)
    assert df.columns.tolist() == ["date", "value"]
    assert df["date"].tolist() == ["2020-01-01", "2020-02-01", "2020-03-01"]
