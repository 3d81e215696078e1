"""
Common test constants and sample documents.
"""

SAMPLE_URL_PREFIX = "https://learn.example.com/contexts/"

# Five contexts; attribute order varies on purpose.
SAMPLE_DOCUMENT = """<?xml version="1.0" encoding="UTF-8"?>
<root>
    <context identifierPath="math" title="Math" type="1" topic="math" displayOrder="0"/>
    <context title="Algebra" identifierPath="math, algebra" type="2" displayOrder="1"/>
    <context displayOrder="0" type="5" title="Linear Equations" identifierPath="math,algebra,linear-equations"/>
    <context identifierPath="math,geometry" title="Geometry" type="2" displayOrder="2"/>
    <context identifierPath="science" title="Science" type="1" topic="science" displayOrder="1"/>
</root>
"""

SAMPLE_CONTEXT_COUNT = 5

NESTED_DOCUMENT = """<root>
    <context identifierPath="history" title="History" type="1">
        <context identifierPath="history,rome" title="Rome" type="2"/>
    </context>
</root>
"""

DUPLICATE_DOCUMENT = """<root>
    <context identifierPath="math" title="Math"/>
    <context identifierPath="math" title="Mathematics"/>
    <context identifierPath="math,intro" title="Intro"/>
    <context identifierPath="science,intro" title="Intro"/>
</root>
"""

UNEXPECTED_ELEMENT_DOCUMENT = """<root>
    <context identifierPath="math" title="Math"/>
    <lesson identifierPath="math,algebra" title="Algebra"/>
    <chapter/>
</root>
"""

MALFORMED_DOCUMENT = """<root>
    <context identifierPath="math" title="Math">
</root>
"""

EMPTY_DOCUMENT = "<root/>"
