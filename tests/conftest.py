"""Pytest path setup and Word HTML samples."""

from pathlib import Path
import sys

import pytest


REPO_ROOT = Path(__file__).resolve().parents[1]

if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))


WORD_PARAGRAPH = (
    '<p class="MsoNormal" style="margin-bottom:0;mso-margin-top-alt:auto;'
    'font-family:&quot;Calibri&quot;,sans-serif"><span lang="EN-US" '
    'style="font-size:11.0pt;mso-bidi-font-size:12pt">Intro text<o:p></o:p></span></p>'
)

WORD_TABLE = """<table class="MsoTableGrid" border="1" cellspacing="0" cellpadding="0" style="border-collapse:collapse;mso-yfti-tbllook:1184">
 <tr style="mso-yfti-irow:0">
  <td width="200" valign="top" style="width:150pt;padding:0">
  <p class="MsoNormal"><span lang="EN-US">A1<o:p></o:p></span></p>
  </td>
  <td width="200" valign="top" style="width:150pt">
  <p class="MsoNormal">B1<o:p></o:p></p>
  </td>
 </tr>
 <tr>
  <td width="200"><p class="MsoNormal">A2</p></td>
  <td width="200"><p class="MsoNormal">B2</p></td>
 </tr>
</table>"""

BULLET = (
    '<!--[if !supportLists]--><span style="font-family:Symbol">·<span '
    'style="font:7.0pt &quot;Times New Roman&quot;">&nbsp;&nbsp; </span></span><!--[endif]-->'
)

WORD_LIST = (
    '<p class="MsoListParagraphCxSpFirst" style="text-indent:-18.0pt;mso-list:l0 level1 lfo1">'
    + BULLET + "First item<o:p></o:p></p>\n"
    '<p class="MsoListParagraphCxSpLast" style="text-indent:-18.0pt;mso-list:l0 level1 lfo1">'
    + BULLET + "Second item<o:p></o:p></p>"
)


def _numbered(n):
    return (
        '<!--[if !supportLists]--><span style="mso-list:Ignore">%d.<span '
        'style="font:7.0pt &quot;Times New Roman&quot;">&nbsp;&nbsp;&nbsp; </span></span>'
        "<!--[endif]-->" % n
    )


WORD_NUMBERED_LIST = (
    '<p class="MsoListParagraphCxSpFirst" style="mso-list:l1 level1 lfo2">'
    + _numbered(1) + "Step one</p>\n"
    '<p class="MsoListParagraphCxSpLast" style="mso-list:l1 level1 lfo2">'
    + _numbered(2) + "Step two</p>"
)

WORD_DOCUMENT = (
    "<!--[if gte mso 9]><xml><w:WordDocument><w:View>Normal</w:View>"
    "</w:WordDocument></xml><![endif]-->\n"
    + WORD_PARAGRAPH + "\n"
    + WORD_TABLE + "\n"
    + WORD_LIST + "\n"
    '<p class="MsoNormal">Closing <b style="mso-bidi-font-weight:normal">bold</b> '
    "words<o:p>&nbsp;</o:p></p>"
)


@pytest.fixture
def word_paragraph():
    return WORD_PARAGRAPH


@pytest.fixture
def word_table():
    return WORD_TABLE


@pytest.fixture
def word_list():
    return WORD_LIST


@pytest.fixture
def word_numbered_list():
    return WORD_NUMBERED_LIST


@pytest.fixture
def word_document():
    return WORD_DOCUMENT
