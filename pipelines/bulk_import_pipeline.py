"""KFP v2 pipeline — bulk import of JSON-Lines partitions into Cosmos DB.

Every partition listed in ``dataset_uris`` becomes one import worker.
Workers run in parallel against the same collection; the first one to
arrive creates the collection and the bulk-import procedure.

Compile
-------
    DOCDB_IMPORT_IMAGE=<registry>/docdb-bulk-import:0.1.0 \
        python -m pipelines.bulk_import_pipeline --compile
"""

from kfp import compiler, dsl

from pipelines.components.bulk_import import import_documents


# ──────────────────────────────────────────────────────────────────────
# Pipeline definition
# ──────────────────────────────────────────────────────────────────────


@dsl.pipeline(
    name="docdb-bulk-import-pipeline",
    description=(
        "Imports pre-partitioned JSON-Lines datasets into a Cosmos DB "
        "collection through a server-side bulk-import procedure."
    ),
)
def bulk_import_pipeline(
    # ── Source ──────────────────────────────────────────────────────
    dataset_uris: list,
    # ── Target ─────────────────────────────────────────────────────
    cosmos_endpoint: str = "https://localhost:8081/",
    cosmos_key: str = "",
    database_name: str = "bulkimport",
    collection_name: str = "documents",
    range_indexes: str = "[]",
    offer_type: str = "",
    partition_key_path: str = "/partitionKey",
    partition_key_value: str = "",
    # ── Import ─────────────────────────────────────────────────────
    upsert: bool = True,
    max_script_size: int = 50000,
    max_script_docs: int = 50,
    max_retry_attempts: int = 10,
) -> None:
    """Fan out one ``import_documents`` task per dataset partition.

    Parameters
    ----------
    dataset_uris:
        URIs of JSON-Lines partitions, one worker each.
    cosmos_endpoint / cosmos_key:
        Account connection details.
    database_name / collection_name:
        Target database (must exist) and collection (created if absent).
    range_indexes:
        JSON list of range-indexed field paths for a new collection.
    offer_type:
        Service tier for a new collection.
    partition_key_path:
        Partition key path of a new collection; documents are grouped by
        their value there.
    partition_key_value:
        Default written into documents lacking a partition value.
    upsert:
        Replace documents with matching ids.
    max_script_size / max_script_docs:
        Per-call payload and document-count limits.
    max_retry_attempts:
        Retries per remote call.
    """
    with dsl.ParallelFor(dataset_uris) as uri:
        importer_task = dsl.importer(
            artifact_uri=uri,
            artifact_class=dsl.Dataset,
            reimport=False,
        )
        import_documents(
            documents=importer_task.output,
            cosmos_endpoint=cosmos_endpoint,
            cosmos_key=cosmos_key,
            database_name=database_name,
            collection_name=collection_name,
            range_indexes=range_indexes,
            offer_type=offer_type,
            partition_key_path=partition_key_path,
            partition_key_value=partition_key_value,
            upsert=upsert,
            max_script_size=max_script_size,
            max_script_docs=max_script_docs,
            max_retry_attempts=max_retry_attempts,
        )


# ──────────────────────────────────────────────────────────────────────
# CLI
# ──────────────────────────────────────────────────────────────────────


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Cosmos DB bulk import pipeline")
    parser.add_argument(
        "--compile",
        action="store_true",
        help="Compile pipeline to YAML",
    )
    parser.add_argument(
        "--output",
        default="pipelines/compiled/bulk_import_pipeline.yaml",
        help="Output path for compiled YAML",
    )
    args = parser.parse_args()

    if args.compile:
        compiler.Compiler().compile(bulk_import_pipeline, args.output)
        print(f"Pipeline compiled → {args.output}")
