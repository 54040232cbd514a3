# List the field types of a .doc file


if __name__ == "__main__":
    from pathlib import Path
    from docfields import DocFieldsError, inspect_document

    doc_path = Path(r"test_doc\sample.doc")  # Replace with your .doc file path
    try:
        for report in inspect_document(doc_path):
            print(report.format())
    except DocFieldsError as e:
        print("Error reading document:", e)
