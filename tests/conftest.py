"""
Pytest configuration and shared fixtures for the atpack test suite.

The documents below are trimmed-down versions of real pack files: one
register-family pack (manifest + .atdf) and one legacy-family pack
(manifest + EDC .PIC).
"""

import logging

import pytest

from atpack.parsers.document import parse_document

AVR_MANIFEST = """<?xml version="1.0" encoding="UTF-8"?>
<package schemaVersion="1.4" xmlns:atmel="http://www.atmel.com/schemas/pack-device-atmel-extension">
  <vendor>Atmel</vendor>
  <name>ATmega_DFP</name>
  <description>Microchip ATmega Series Device Support</description>
  <url>http://packs.download.atmel.com/</url>
  <releases>
    <release version="2.0.401">Update</release>
    <release version="1.9.200">Older</release>
  </releases>
  <devices>
    <family Dfamily="ATmega" Dvendor="Microchip:3">
      <processor Dcore="AVR8"/>
      <device Dname="ATmega328P">
        <atmel:memory name="FLASH" type="flash" start="0x0" size="0x8000" pagesize="0x80"/>
        <memory name="IRAM" start="0x100" size="0x800"/>
        <atmel:memory name="EEPROM" type="eeprom" start="0x0" size="0x400"/>
        <memory name="EMPTY" start="0x0" size="0x0"/>
        <variant ordercode="ATmega328P-AU" package="TQFP32" tempmin="-40" tempmax="85" vccmin="1.8" vccmax="5.5"/>
        <variant ordercode="ATmega328P-XX" package="DIP28"/>
        <book name="doc/ATmega328P.pdf" title="ATmega328P Datasheet"/>
        <book name="https://www.microchip.com/ATmega328P" title="ATmega328P Device Page"/>
        <book name="doc/AN2519.pdf" title="Application Note AN2519"/>
        <book name="doc/errata.pdf" title="Errata sheet"/>
        <atmel:interface type="ISP"/>
        <atmel:interface type="debugWIRE"/>
      </device>
      <device Dname="ATmega48PB">
        <processor Dcore="AVR8X"/>
      </device>
    </family>
  </devices>
</package>
"""

ATDF = """<?xml version="1.0" encoding="UTF-8"?>
<avr-tools-device-file schema-version="4.0">
  <variants>
    <variant ordercode="ATmega328P-AU" package="TQFP32" pinout="TQFP32" speedmax="20000000"
             tempmin="-40" tempmax="85" vccmin="1.8" vccmax="5.5"/>
  </variants>
  <devices>
    <device name="ATmega328P" architecture="AVR8" family="megaAVR">
      <address-spaces>
        <address-space name="prog" id="prog" start="0x0000" size="0x8000">
          <memory-segment start="0x0000" size="0x8000" type="flash" name="FLASH" pagesize="0x80"/>
        </address-space>
        <address-space name="signatures" id="signatures" start="0" size="3">
          <memory-segment start="0" size="3" type="signatures" name="SIGNATURES"/>
        </address-space>
        <address-space name="fuses" id="fuses" start="0" size="0x0003">
          <memory-segment start="0" size="0x0003" type="fuses" name="FUSES"/>
        </address-space>
        <address-space name="lockbits" id="lockbits" start="0" size="0x0001">
          <memory-segment start="0" size="0x0001" type="lockbits" name="LOCKBITS"/>
        </address-space>
        <address-space name="data" id="data" start="0x0000" size="0x0900">
          <memory-segment type="regs" size="0x0020" start="0x0000" name="REGISTERS"/>
          <memory-segment type="io" size="0x0040" start="0x0020" name="MAPPED_IO"/>
          <memory-segment type="ram" size="0x0800" start="0x0100" name="IRAM"/>
        </address-space>
        <address-space name="eeprom" id="eeprom" start="0x0000" size="0x0400">
          <memory-segment start="0x0000" size="0x0400" type="eeprom" name="EEPROM" pagesize="0x04"/>
        </address-space>
        <address-space name="io" id="io" start="0" size="0x40"/>
      </address-spaces>
      <peripherals>
        <module name="ADC">
          <instance name="ADC" caption="Analog-to-Digital Converter">
            <register-group name="ADC" name-in-module="ADC" offset="0x00" address-space="data"/>
            <signals>
              <signal group="ADC" function="default" pad="PC1" index="1"/>
              <signal group="ADC" function="default" pad="PC0" index="0"/>
            </signals>
          </instance>
        </module>
        <module name="FUSE">
          <instance name="FUSE" caption="Fuses">
            <register-group name="FUSE" name-in-module="FUSE" offset="0" address-space="fuses"/>
          </instance>
        </module>
        <module name="TC8">
          <instance name="TC0" caption="Timer/Counter, 8-bit">
            <register-group name="TC0" name-in-module="TC0" offset="0x00" address-space="data"/>
            <signals>
              <signal group="OC0A" function="default" pad="PD6"/>
              <signal group="T" function="default" pad="PD4"/>
            </signals>
          </instance>
        </module>
        <module name="PORT">
          <instance name="PORTD" caption="I/O Port">
            <signals>
              <signal group="P" function="default" pad="PD6" index="6"/>
            </signals>
          </instance>
        </module>
      </peripherals>
      <interrupts>
        <interrupt index="1" name="INT0" caption="External Interrupt Request 0"/>
        <interrupt index="0" name="RESET" caption="External Pin, Power-on Reset"/>
        <interrupt index="2" name="INT1"/>
        <interrupt index="3" caption="nameless"/>
      </interrupts>
      <property-groups>
        <property-group name="SIGNATURES">
          <property name="JTAGID" value="0x0950F03F"/>
          <property name="SIGNATURE2" value="0x0F"/>
          <property name="SIGNATURE0" value="0x1E"/>
          <property name="SIGNATURE1" value="0x95"/>
        </property-group>
        <property-group name="ELECTRICAL_CHARACTERISTICS">
          <property name="IIL" caption="Input leakage current" min="-1" max="1" unit="uA"/>
          <property name="RPU" value="35"/>
        </property-group>
      </property-groups>
    </device>
  </devices>
  <modules>
    <module caption="Analog-to-Digital Converter" name="ADC">
      <register-group caption="Analog-to-Digital Converter" name="ADC">
        <register caption="The ADC multiplexer Selection Register" name="ADMUX" offset="0x7C" size="1" mask="0xEF" ocd-rw="RW">
          <bitfield caption="Reference Selection Bits" mask="0xC0" name="REFS" values="ANALOG_ADC_V_REF3"/>
          <bitfield caption="Left Adjust Result" mask="0x20" name="ADLAR"/>
          <bitfield caption="Analog Channel Selection Bits" mask="0x0F" name="MUX"/>
          <bitfield caption="no mask"/>
        </register>
        <register caption="The ADC Control and Status register A" name="ADCSRA" offset="0x7A" size="1" initval="0x00">
          <bitfield caption="ADC Prescaler Select Bits" mask="0x07" name="ADPS" values="ANALOG_ADC_PRESCALER"/>
        </register>
        <register caption="no offset" name="BROKEN" size="1"/>
      </register-group>
      <value-group name="ANALOG_ADC_V_REF3">
        <value caption="AREF, Internal Vref turned off" name="AREF" value="0x00"/>
        <value caption="AVCC with external capacitor at AREF pin" name="AVCC" value="0x01"/>
        <value caption="Internal 1.1V Voltage Reference with external capacitor at AREF pin" name="INTERNAL_11" value="0x03"/>
      </value-group>
      <value-group name="ANALOG_ADC_PRESCALER">
        <value caption="ADC clock divided by 128" name="128" value="0x07"/>
        <value caption="ADC clock divided by 2" name="2" value="0x01"/>
        <value caption="ADC clock divided by 4" name="4" value="0x02"/>
      </value-group>
      <value-group name="UNUSED"/>
    </module>
    <module caption="Fuses" name="FUSE">
      <register-group caption="Fuses" name="FUSE">
        <register caption="" name="EXTENDED" offset="0x02" size="1" initval="0xFF">
          <bitfield caption="Brown-out Detector trigger level" mask="0x07" name="BODLEVEL" values="ENUM_BODLEVEL"/>
        </register>
        <register caption="" name="HIGH" offset="0x01" size="1" initval="0xD9">
          <bitfield caption="Reset Disabled" mask="0x80" name="RSTDISBL"/>
          <bitfield caption="Boot Size" mask="0x06" name="BOOTSZ" values="ENUM_BOOTSZ"/>
          <bitfield caption="Boot Reset vector Enabled" mask="0x01" name="BOOTRST"/>
        </register>
        <register caption="" name="LOW" offset="0x00" size="1">
          <bitfield caption="Divide clock by 8 internally" mask="0x80" name="CKDIV8"/>
          <bitfield caption="Clock output on PORTB0" mask="0x40" name="CKOUT"/>
          <bitfield caption="Select Clock Source" mask="0x3F" name="SUT_CKSEL" values="ENUM_SUT_CKSEL"/>
        </register>
      </register-group>
      <value-group name="ENUM_SUT_CKSEL">
        <value caption="Ext. Clock; Start-up time PWRDWN/RESET: 6 CK/14 CK + 0 ms" name="EXTCLK_6CK_14CK_0MS" value="0x00"/>
        <value caption="Int. RC Osc. 8 MHz; Start-up time PWRDWN/RESET: 6 CK/14 CK + 0 ms" name="INTRCOSC_8MHZ_6CK_14CK_0MS" value="0x02"/>
        <value caption="Ext. Crystal Osc. 8.0 MHz; Start-up time: 16K CK/14 CK + 65 ms" name="EXTXOSC_8MHZ_16KCK_14CK_65MS" value="0x3F"/>
      </value-group>
      <value-group name="ENUM_BOOTSZ">
        <value caption="Boot Flash size=256 words" name="256W_3F00" value="0x03"/>
        <value caption="Boot Flash size=2048 words" name="2048W_3800" value="0x00"/>
      </value-group>
    </module>
    <module caption="Lockbits" name="LOCKBIT">
      <register-group caption="Lockbits" name="LOCKBIT">
        <register caption="" name="LOCKBIT" offset="0x00" size="1" initval="0xFF">
          <bitfield caption="Memory Lock" mask="0x03" name="LB" values="ENUM_LB"/>
          <bitfield caption="Boot Loader Protection Mode" mask="0x0C" name="BLB0" values="ENUM_BLB"/>
        </register>
        <register caption="" name="RESERVED" offset="0x01" size="1"/>
      </register-group>
      <value-group name="ENUM_LB">
        <value caption="Further programming and verification disabled" name="PROG_VER_DISABLED" value="0x00"/>
        <value caption="Further programming disabled" name="PROG_DISABLED" value="0x02"/>
        <value caption="No memory lock features enabled" name="NO_LOCK" value="0x03"/>
      </value-group>
    </module>
    <module caption="Timer/Counter, 8-bit" name="TC8">
      <register-group caption="Timer/Counter, 8-bit" name="TC0">
        <register caption="Timer/Counter Control Register A" name="TCCR0A" offset="0x44" size="1">
          <bitfield caption="Waveform Generation Mode" mask="0x03" name="WGM0"/>
        </register>
        <register caption="Timer/Counter Control Register B" name="TCCR0B" offset="0x45" size="1">
          <bitfield caption="Clock Select" mask="0x07" name="CS0" values="CLK_SEL_3BIT_EXT"/>
        </register>
        <register caption="Timer/Counter0" name="TCNT0" offset="0x46" size="1"/>
        <register caption="Output Compare Register A" name="OCR0A" offset="0x47" size="1"/>
        <register caption="Output Compare Register B" name="OCR0B" offset="0x48" size="1"/>
      </register-group>
      <value-group name="CLK_SEL_3BIT_EXT">
        <value caption="No Clock Source (Stopped)" name="NO_CLOCK_SOURCE_STOPPED" value="0x00"/>
        <value caption="Running, No Prescaling" name="RUNNING_NO_PRESCALING" value="0x01"/>
        <value caption="Running, CLK/8" name="RUNNING_CLK_8" value="0x02"/>
        <value caption="Running, CLK/64" name="RUNNING_CLK_64" value="0x03"/>
      </value-group>
    </module>
  </modules>
  <pinouts>
    <pinout name="TQFP32" caption="TQFP 32 pin">
      <pin position="10" pad="PD6"/>
      <pin position="2" pad="PD4"/>
      <pin position="23" pad="PC0"/>
      <pin position="24" pad="PC1"/>
      <pin position="5" pad="GND"/>
    </pinout>
    <pinout name="EMPTY"/>
  </pinouts>
</avr-tools-device-file>
"""

PIC_MANIFEST = """<?xml version="1.0" encoding="UTF-8"?>
<package schemaVersion="1.4">
  <vendor>Microchip</vendor>
  <name>PIC16Fxxx_DFP</name>
  <description>Microchip PIC16F Series Device Support</description>
  <url>https://packs.download.microchip.com/</url>
  <devices>
    <family Dfamily="PIC16" Dvendor="Microchip:3">
      <device Dname="PIC16F628A">
        <processor Dcore="PIC16"/>
      </device>
    </family>
  </devices>
</package>
"""

EDC = """<?xml version="1.0" encoding="UTF-8"?>
<edc:PIC xmlns:edc="http://crownking/edc" edc:arch="16xxxx" edc:name="PIC16F628A">
  <edc:ArchDef edc:desc="16xxxx" edc:name="16xxxx">
    <edc:MemTraits edc:bankcount="4" edc:hwstackdepth="8"/>
  </edc:ArchDef>
  <edc:InstructionSet edc:instructionsetid="pic16f77"/>
  <edc:Programming edc:erasealgo="1">
    <edc:ProgrammingWaitTime edc:progop="cfg" edc:time="8000" edc:timeunits="us"/>
    <edc:ProgrammingWaitTime edc:progop="pgm" edc:time="4000"/>
    <edc:ProgrammingRowSize edc:nzsize="1" edc:progop="pgm"/>
  </edc:Programming>
  <edc:Power>
    <edc:VPP edc:defaultvoltage="12.5" edc:maxvoltage="13.25" edc:minvoltage="10"/>
    <edc:VDD edc:maxdefaultvoltage="5" edc:maxvoltage="5.5" edc:minvoltage="3" edc:nominalvoltage="5"/>
  </edc:Power>
  <edc:Breakpoints edc:hwbpcount="1" edc:hasdatacapture="false"/>
  <edc:ProgramSpace>
    <edc:CodeSector edc:beginaddr="0x0" edc:endaddr="0x800" edc:regionid="program"/>
    <edc:DeviceIDSector edc:beginaddr="0x2006" edc:endaddr="0x2007" edc:mask="0x3fe0" edc:value="0x1060" edc:regionid="devid">
      <edc:DEVIDToRev edc:value="0x1" edc:revlist="A1"/>
      <edc:DEVIDToRev edc:value="0x2" edc:revlist="A2"/>
    </edc:DeviceIDSector>
    <edc:ConfigFuseSector edc:beginaddr="0x2007" edc:endaddr="0x2008" edc:regionid="cfgmem">
      <edc:DCRDef edc:_addr="0x2007" edc:cname="CONFIG" edc:default="0x3fff" edc:impl="0x3fff" edc:nzwidth="0xe">
        <edc:DCRModeList>
          <edc:DCRMode edc:id="DS.0">
            <edc:DCRFieldDef edc:cname="FOSC" edc:desc="Oscillator Selection bits" edc:mask="0x3" edc:nzwidth="0x2">
              <edc:DCRFieldSemantic edc:cname="LP" edc:desc="LP oscillator" edc:when="(field &amp; 0x3) == 0x0"/>
              <edc:DCRFieldSemantic edc:cname="XT" edc:desc="XT oscillator" edc:when="(field &amp; 0x3) == 0x1"/>
              <edc:DCRFieldSemantic edc:cname="HS" edc:desc="HS oscillator" edc:when="(field &amp; 0x3) == 0x2"/>
              <edc:DCRFieldSemantic edc:cname="ODD" edc:desc="not a literal" edc:when="field != other"/>
            </edc:DCRFieldDef>
            <edc:DCRFieldDef edc:cname="WDTE" edc:desc="Watchdog Timer Enable bit" edc:mask="0x1" edc:nzwidth="0x1"/>
            <edc:DCRFieldDef edc:cname="PWRTE" edc:desc="Power-up Timer Enable bit" edc:nzwidth="0x1"/>
            <edc:AdjustPoint edc:offset="2"/>
            <edc:DCRFieldDef edc:cname="LVP" edc:desc="Low-Voltage Programming Enable bit" edc:mask="0x1" edc:nzwidth="0x1"/>
          </edc:DCRMode>
          <edc:DCRMode edc:id="DS.1">
            <edc:DCRFieldDef edc:cname="IGNORED" edc:nzwidth="0x4"/>
          </edc:DCRMode>
        </edc:DCRModeList>
      </edc:DCRDef>
    </edc:ConfigFuseSector>
    <edc:EEDataSector edc:beginaddr="0x2100" edc:endaddr="0x2180" edc:regionid="eedata"/>
  </edc:ProgramSpace>
  <edc:DataSpace edc:endaddr="0x200">
    <edc:RegardlessOfMode>
      <edc:SFRDataSector edc:bank="0" edc:beginaddr="0x0" edc:endaddr="0xc" edc:regionid="sfr0">
        <edc:SFRDef edc:_addr="0x3" edc:cname="STATUS" edc:desc="STATUS register" edc:access="nnnnnnnn" edc:por="00011000">
          <edc:SFRModeList>
            <edc:SFRMode edc:id="DS.0">
              <edc:SFRFieldDef edc:cname="C" edc:mask="0x1" edc:desc="Carry"/>
              <edc:SFRFieldDef edc:cname="RP" edc:mask="0x60"/>
              <edc:SFRFieldDef edc:cname="ODD" edc:mask="0x5" edc:access="r-"/>
            </edc:SFRMode>
          </edc:SFRModeList>
        </edc:SFRDef>
      </edc:SFRDataSector>
    </edc:RegardlessOfMode>
  </edc:DataSpace>
  <edc:PinList>
    <edc:Pin><edc:VirtualPin edc:name="RA2"/><edc:VirtualPin edc:name="AN2"/><edc:VirtualPin edc:name="VREF"/></edc:Pin>
    <edc:Pin><edc:VirtualPin edc:name="RA3"/><edc:VirtualPin edc:name="AN3"/></edc:Pin>
    <edc:Pin/>
    <edc:Pin><edc:VirtualPin edc:name="VSS"/></edc:Pin>
    <edc:Pin><edc:VirtualPin edc:name="RB1"/><edc:VirtualPin edc:name="RX"/><edc:VirtualPin edc:name="DT"/></edc:Pin>
  </edc:PinList>
</edc:PIC>
"""

PACK_INDEX = """<?xml version="1.0" encoding="UTF-8"?>
<index schemaVersion="1.0.0">
  <vendor>Keil</vendor>
  <url>https://www.keil.com/pack/</url>
  <pindex>
    <pdsc url="http://packs.download.atmel.com/" vendor="Atmel" name="ATmega_DFP" version="2.0.401"/>
    <pdsc url="https://packs.download.microchip.com" vendor="Microchip" name="PIC16Fxxx_DFP"/>
    <pdsc vendor="Broken" name="no_url"/>
  </pindex>
</index>
"""


@pytest.fixture
def avr_manifest():
    return AVR_MANIFEST.encode("utf-8")


@pytest.fixture
def atdf():
    return ATDF.encode("utf-8")


@pytest.fixture
def atdf_doc():
    return parse_document(ATDF.encode("utf-8"), source="ATmega328P.atdf")


@pytest.fixture
def pic_manifest():
    return PIC_MANIFEST.encode("utf-8")


@pytest.fixture
def edc():
    return EDC.encode("utf-8")


@pytest.fixture
def edc_doc():
    return parse_document(EDC.encode("utf-8"), source="PIC16F628A.PIC")


@pytest.fixture
def pack_index():
    return PACK_INDEX.encode("utf-8")


@pytest.fixture
def avr_pack_dir(tmp_path, avr_manifest, atdf):
    """An unpacked register-family pack on disk."""
    (tmp_path / "Atmel.ATmega_DFP.pdsc").write_bytes(avr_manifest)
    (tmp_path / "atdf").mkdir()
    (tmp_path / "atdf" / "ATmega328P.atdf").write_bytes(atdf)
    return tmp_path


@pytest.fixture
def restore_logging():
    """Put the root logger back after code that calls setup_logging()."""
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
